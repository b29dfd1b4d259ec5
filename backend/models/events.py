"""Stream events sent to the client over Server-Sent Events."""
from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_frame(self) -> str:
        """Render as one self-contained SSE frame."""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


class ConnectedEvent(_Event):
    type: Literal["connected"] = "connected"
    session_id: str = Field(alias="sessionId")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class StatusEvent(_Event):
    type: Literal["status"] = "status"
    message: str


class TokenEvent(_Event):
    type: Literal["token"] = "token"
    content: str


class PingEvent(_Event):
    type: Literal["ping"] = "ping"
    t: int


class CompleteEvent(_Event):
    type: Literal["complete"] = "complete"
    answer: str
    confidence: float
    sources: List[str] = Field(default_factory=list)
    retrieved_document_count: int = Field(0, alias="retrievedDocumentCount")


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str
    details: Optional[str] = None


class EndEvent(_Event):
    type: Literal["end"] = "end"


StreamEvent = Union[
    ConnectedEvent, StatusEvent, TokenEvent, PingEvent, CompleteEvent, ErrorEvent, EndEvent
]
