"""Conversation data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True)
class Turn:
    """Represents a single answered question in a session."""
    timestamp: datetime
    question: str
    answer: str
    confidence: float
    sources: Tuple[str, ...] = ()


@dataclass
class ConversationStats:
    """Summary of a session's history."""
    total_turns: int
    average_confidence: float
    unique_sources: int
    time_span_minutes: float
