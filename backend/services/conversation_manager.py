"""Conversation manager for multi-turn conversation support."""
import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, Iterable, Optional, Tuple

from models.conversation import ConversationStats, Turn
from config import MAX_HISTORY_TURNS, SESSION_TIMEOUT_SECONDS
from services.query_heuristics import is_follow_up_query, is_known_term

logger = logging.getLogger(__name__)

FOLLOW_UP_CONTEXT_TURNS = 5
DEFAULT_CONTEXT_TURNS = 2


class ConversationMemory:
    """Bounded, in-process turn history for a single session."""

    def __init__(self, max_turns: int = MAX_HISTORY_TURNS):
        self.max_turns = max_turns
        self._turns: Deque[Turn] = deque(maxlen=max_turns)

    def __len__(self) -> int:
        return len(self._turns)

    def add_turn(
        self,
        question: str,
        answer: str,
        confidence: float,
        sources: Iterable[str] = (),
        timestamp: Optional[datetime] = None,
    ) -> Turn:
        """Append a turn, evicting the oldest one once at capacity."""
        turn = Turn(
            timestamp=timestamp or datetime.now(),
            question=question,
            answer=answer,
            confidence=max(0.0, min(1.0, confidence)),
            sources=tuple(sources),
        )
        self._turns.append(turn)
        return turn

    def get_history(self) -> Tuple[Turn, ...]:
        """Snapshot of the history, oldest first."""
        return tuple(self._turns)

    def get_recent_turns(self, count: int) -> Tuple[Turn, ...]:
        if count <= 0:
            return ()
        return tuple(self._turns)[-count:]

    def get_recent_context(self, count: int = 3) -> str:
        """
        Render the last ``count`` turns as alternating Q/A lines.

        Turns are separated by a blank line.
        """
        return "\n\n".join(
            f"Q: {turn.question}\nA: {turn.answer}" for turn in self.get_recent_turns(count)
        )

    def clear(self) -> None:
        self._turns.clear()

    def get_stats(self) -> ConversationStats:
        turns = self.get_history()
        if not turns:
            return ConversationStats(
                total_turns=0, average_confidence=0.0, unique_sources=0, time_span_minutes=0.0
            )

        average = sum(turn.confidence for turn in turns) / len(turns)
        sources = {source for turn in turns for source in turn.sources}
        span = (turns[-1].timestamp - turns[0].timestamp).total_seconds() / 60

        return ConversationStats(
            total_turns=len(turns),
            average_confidence=average,
            unique_sources=len(sources),
            time_span_minutes=span,
        )


def build_composite_query(question: str, memory: ConversationMemory) -> str:
    """
    Merge a question with prior-turn context.

    Known terms are returned untouched, follow-ups get the last five turns
    with an explicit follow-up note, and everything else gets the last two
    turns prepended when there are any.

    Args:
        question: Raw user question
        memory: Session history (read only)

    Returns:
        Text used for classification and retrieval
    """
    if is_known_term(question):
        return question

    if is_follow_up_query(question):
        context = memory.get_recent_context(FOLLOW_UP_CONTEXT_TURNS)
        if context:
            return (
                f"Previous conversation context:\n{context}\n\n"
                f"Current user request: {question}\n\n"
                "Note: This appears to be a follow-up query asking for more detailed "
                "information about the previously discussed SPJIMR PGPM topics."
            )
        return (
            f"User request: {question} (Note: This appears to be a request for "
            "detailed SPJIMR PGPM information)"
        )

    context = memory.get_recent_context(DEFAULT_CONTEXT_TURNS)
    if context:
        return f"{context}\n\nUser: {question}"
    return question


@dataclass
class Session:
    """A conversation memory plus the lock that serializes its requests."""
    session_id: str
    memory: ConversationMemory = field(default_factory=ConversationMemory)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    created_at: float = field(default_factory=time.monotonic)
    last_active: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def is_expired(self, timeout_seconds: float, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        # A session with a request in flight is never expired
        return not self.lock.locked() and now - self.last_active > timeout_seconds


class ConversationManager:
    """Registry of live sessions, keyed by caller-supplied session id."""

    def __init__(self, timeout_seconds: float = SESSION_TIMEOUT_SECONDS, max_turns: int = MAX_HISTORY_TURNS):
        self.timeout_seconds = timeout_seconds
        self.max_turns = max_turns
        self._sessions: Dict[str, Session] = {}
        logger.info(f"ConversationManager initialized: timeout={timeout_seconds}s, max_turns={max_turns}")

    def __len__(self) -> int:
        return len(self._sessions)

    def get_or_create(self, session_id: Optional[str] = None) -> Session:
        """
        Look up a session, creating it when unknown.

        Expired sessions are evicted on every lookup; there is no background
        sweep.
        """
        self._evict_expired()

        if session_id and session_id in self._sessions:
            session = self._sessions[session_id]
            session.touch()
            return session

        new_id = session_id or self._generate_session_id()
        session = Session(session_id=new_id, memory=ConversationMemory(self.max_turns))
        self._sessions[new_id] = session
        logger.info(f"Created new session: {new_id}", extra={"session_id": new_id})
        return session

    def get(self, session_id: str) -> Optional[Session]:
        self._evict_expired()
        return self._sessions.get(session_id)

    def clear(self, session_id: str) -> bool:
        """Clear a session's history. Returns False if the session is unknown."""
        session = self.get(session_id)
        if session is None:
            return False
        session.memory.clear()
        logger.info(f"Cleared session history: {session_id}", extra={"session_id": session_id})
        return True

    def _evict_expired(self) -> None:
        now = time.monotonic()
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.is_expired(self.timeout_seconds, now)
        ]
        for session_id in expired:
            del self._sessions[session_id]
            logger.info(f"Session expired: {session_id}", extra={"session_id": session_id})

    def _generate_session_id(self) -> str:
        return f"session_{uuid.uuid4().hex}"
