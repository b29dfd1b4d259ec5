"""Data models for the PGPM Admissions Assistant."""
from .document import DocumentMetadata, RetrievedDocument
from .conversation import ConversationStats, Turn
from .pipeline import (
    ContextJudgment,
    PipelineState,
    RelevanceJudgment,
    RequestContext,
    StageTrace,
)
from .events import (
    CompleteEvent,
    ConnectedEvent,
    EndEvent,
    ErrorEvent,
    PingEvent,
    StatusEvent,
    StreamEvent,
    TokenEvent,
)
from .api import ChatRequest, ChatResponse, HistoryResponse, HistoryStats, TurnOut

__all__ = [
    "DocumentMetadata",
    "RetrievedDocument",
    "ConversationStats",
    "Turn",
    "ContextJudgment",
    "PipelineState",
    "RelevanceJudgment",
    "RequestContext",
    "StageTrace",
    "CompleteEvent",
    "ConnectedEvent",
    "EndEvent",
    "ErrorEvent",
    "PingEvent",
    "StatusEvent",
    "StreamEvent",
    "TokenEvent",
    "ChatRequest",
    "ChatResponse",
    "HistoryResponse",
    "HistoryStats",
    "TurnOut",
]
