"""Request and response models for the chat API."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request body for POST /api/chat and /api/chat/stream."""
    question: str = Field(..., min_length=1, description="User question")
    session_id: Optional[str] = Field(None, description="Session ID (the X-Session-ID header wins)")
    include_context: bool = False


class ChatResponse(BaseModel):
    """Buffered answer."""
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    confidence: float
    sources: List[str] = Field(default_factory=list)
    session_id: str = Field(alias="sessionId")
    retrieved_document_count: Optional[int] = Field(None, alias="retrievedDocumentCount")


class TurnOut(BaseModel):
    timestamp: str
    question: str
    answer: str
    confidence: float
    sources: List[str] = Field(default_factory=list)


class HistoryStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_turns: int = Field(alias="totalTurns")
    average_confidence: float = Field(alias="averageConfidence")
    unique_sources: int = Field(alias="uniqueSources")
    time_span: float = Field(alias="timeSpan")


class HistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    history: List[TurnOut] = Field(default_factory=list)
    stats: HistoryStats
