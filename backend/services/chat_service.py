"""The answer operation: session handling around one pipeline run."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from models.conversation import ConversationStats, Turn
from models.pipeline import RequestContext, StatusSink, TokenSink
from services.conversation_manager import ConversationManager, Session, build_composite_query
from services.pipeline import RAGPipeline
from services.trace_logger import TraceLogger

logger = logging.getLogger(__name__)


@dataclass
class AnswerResult:
    """What the caller gets back for one question."""
    answer: str
    confidence: float
    sources: List[str]
    retrieved_document_count: int
    session_id: str
    error_message: Optional[str] = None
    evaluator_flags: List[str] = field(default_factory=list)


class ChatService:
    """Runs questions through the pipeline with per-session memory."""

    def __init__(
        self,
        pipeline: RAGPipeline,
        conversations: ConversationManager,
        trace_logger: Optional[TraceLogger] = None,
    ):
        self.pipeline = pipeline
        self.conversations = conversations
        self.trace_logger = trace_logger

    def open_session(self, session_id: Optional[str] = None) -> Session:
        """Resolve a caller-supplied session id, creating the session if needed."""
        return self.conversations.get_or_create(session_id)

    async def answer(
        self,
        question: str,
        session_id: Optional[str] = None,
        on_token: Optional[TokenSink] = None,
        on_status: Optional[StatusSink] = None,
    ) -> AnswerResult:
        """
        Answer one question within a session.

        Requests sharing a session run one at a time: the composite query is
        built, the pipeline run and the turn recorded while holding the
        session's lock, so each request sees the previous one's turn.

        Raises:
            ValueError: If the question is empty
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("Question is required and must be a non-empty string")

        session = self.conversations.get_or_create(session_id)
        async with session.lock:
            composite = build_composite_query(question, session.memory)
            ctx = RequestContext(session_id=session.session_id, on_token=on_token, on_status=on_status)

            logger.info(
                f"Processing question ({len(session.memory)} prior turns): {question[:100]}",
                extra={"session_id": session.session_id},
            )
            state = await self.pipeline.run(composite, ctx, question=question)

            confidence = max(0.0, min(1.0, state.confidence))
            session.memory.add_turn(question, state.response, confidence, state.sources)
            session.touch()

        if self.trace_logger is not None:
            self.trace_logger.log_trace(question, state, ctx, session_id=session.session_id)

        return AnswerResult(
            answer=state.response,
            confidence=confidence,
            sources=list(state.sources),
            retrieved_document_count=len(state.retrieved_docs),
            session_id=session.session_id,
            error_message=state.error_message,
            evaluator_flags=list(state.evaluator_flags),
        )

    def get_history(self, session_id: Optional[str]) -> Tuple[Session, Tuple[Turn, ...], ConversationStats]:
        """History and statistics for a session (created empty when unknown)."""
        session = self.open_session(session_id)
        return session, session.memory.get_history(), session.memory.get_stats()

    def clear_history(self, session_id: Optional[str]) -> Session:
        session = self.open_session(session_id)
        self.conversations.clear(session.session_id)
        return session

    @property
    def active_sessions(self) -> int:
        return len(self.conversations)
