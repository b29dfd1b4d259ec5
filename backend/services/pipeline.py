"""
Five-stage question answering pipeline.

The pipeline is a small finite-state interpreter over a declarative stage
table. Each entry names a stage, the coroutine that updates the shared
PipelineState, and a selector that picks the next stage from that state.
The trace always lists all five stages in order; stages jumped over by a
selector are recorded as ``skipped``.
"""
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from models.pipeline import PipelineState, RequestContext
from services.context_gate import ContextGate
from services.errors import PipelineError, RAGError
from services.generator import AnswerGenerator
from services.prompts import PIPELINE_ERROR_RESPONSE
from services.query_validator import QueryValidator
from services.retrieval_engine import RetrievalEngine

logger = logging.getLogger(__name__)

VALIDATE_QUERY = "validate_query"
RETRIEVE = "retrieve"
CHECK_CONTEXT = "check_context"
GENERATE = "generate"
VALIDATE_RESPONSE = "validate_response"

STAGE_ORDER: Tuple[str, ...] = (VALIDATE_QUERY, RETRIEVE, CHECK_CONTEXT, GENERATE, VALIDATE_RESPONSE)

STATUS_MESSAGES: Dict[str, str] = {
    VALIDATE_QUERY: "Validating question...",
    RETRIEVE: "Searching PGPM documents...",
    CHECK_CONTEXT: "Checking retrieved information...",
    GENERATE: "Generating answer...",
    VALIDATE_RESPONSE: "Finalizing answer...",
}

ERROR_CONFIDENCE = 0.1
VALIDATED_MIN_CONFIDENCE = 0.8

StageHandler = Callable[[PipelineState, RequestContext], Awaitable[None]]
NextStage = Callable[[PipelineState], Optional[str]]


@dataclass(frozen=True)
class Stage:
    name: str
    handler: StageHandler
    next_stage: NextStage


def _always(name: Optional[str]) -> NextStage:
    return lambda state: name


class RAGPipeline:
    """Validate, retrieve, check context, generate, validate response."""

    def __init__(
        self,
        validator: QueryValidator,
        retriever: RetrievalEngine,
        context_gate: ContextGate,
        generator: AnswerGenerator,
    ):
        self.validator = validator
        self.retriever = retriever
        self.context_gate = context_gate
        self.generator = generator
        self.stages: Dict[str, Stage] = {stage.name: stage for stage in self._stage_table()}

    def _stage_table(self) -> Tuple[Stage, ...]:
        return (
            Stage(VALIDATE_QUERY, self._validate_query, lambda s: RETRIEVE if s.is_relevant else GENERATE),
            Stage(RETRIEVE, self._retrieve, _always(CHECK_CONTEXT)),
            Stage(CHECK_CONTEXT, self._check_context, _always(GENERATE)),
            Stage(GENERATE, self._generate, _always(VALIDATE_RESPONSE)),
            Stage(VALIDATE_RESPONSE, self._validate_response, _always(None)),
        )

    async def run(self, query: str, ctx: RequestContext, question: Optional[str] = None) -> PipelineState:
        """
        Answer a (composite) query.

        Any exception raised by a stage stops the run and yields the fixed
        apology at confidence 0.1, with the error kept in ``error_message``.
        Errors outside the RAGError hierarchy are reported as PIPELINE_ERROR.

        Args:
            query: Composite query text used for classification and retrieval
            ctx: Request-scoped sinks and trace
            question: The raw user question behind ``query``

        Returns:
            Final PipelineState
        """
        state = PipelineState(query=query.strip(), question=question)
        current: Optional[str] = STAGE_ORDER[0]
        position = 0

        while current is not None:
            index = STAGE_ORDER.index(current)
            for skipped in STAGE_ORDER[position:index]:
                ctx.record(skipped, 0, "skipped")
            position = index + 1

            stage = self.stages[current]
            ctx.emit_status(STATUS_MESSAGES[current])
            start = time.monotonic()
            try:
                await stage.handler(state, ctx)
            except Exception as e:
                error = e if isinstance(e, RAGError) else PipelineError(
                    str(e) or type(e).__name__, details={"error_type": type(e).__name__}
                )
                duration_ms = int((time.monotonic() - start) * 1000)
                ctx.record(current, duration_ms, "error")
                for remaining in STAGE_ORDER[index + 1:]:
                    ctx.record(remaining, 0, "aborted")
                logger.error(
                    f"Stage {current} failed: {error.message}",
                    exc_info=not isinstance(e, RAGError),
                    extra={
                        "session_id": ctx.session_id,
                        "stage": current,
                        "duration_ms": duration_ms,
                        "error_code": error.code,
                        "error_details": error.details,
                    },
                )
                return self._error_state(state, error)

            duration_ms = int((time.monotonic() - start) * 1000)
            ctx.record(current, duration_ms, "ok")
            logger.debug(
                f"Stage {current} completed",
                extra={"session_id": ctx.session_id, "stage": current, "duration_ms": duration_ms},
            )
            current = stage.next_stage(state)

        return state

    async def _validate_query(self, state: PipelineState, ctx: RequestContext) -> None:
        decision = await self.validator.validate(state.query)
        state.is_relevant = decision.is_relevant
        state.category = decision.category
        state.confidence = decision.confidence
        state.sources = []

    async def _retrieve(self, state: PipelineState, ctx: RequestContext) -> None:
        result = await self.retriever.retrieve(state.query)
        state.retrieved_docs = result.documents
        state.sources = result.sources

    async def _check_context(self, state: PipelineState, ctx: RequestContext) -> None:
        decision = await self.context_gate.check(state.query, state.retrieved_docs)
        state.has_answer = decision.has_answer
        state.context = decision.context
        state.confidence = decision.confidence

    async def _generate(self, state: PipelineState, ctx: RequestContext) -> None:
        answer = await self.generator.generate(state, ctx)
        state.response = answer.response
        state.confidence = answer.confidence
        state.needs_validation = answer.needs_validation
        state.error_message = answer.error_message
        state.evaluator_flags = list(answer.flags)
        state.branch = answer.branch

    async def _validate_response(self, state: PipelineState, ctx: RequestContext) -> None:
        """Pass-through; only settles the validation flag and confidence floor."""
        if state.needs_validation:
            state.needs_validation = False
            state.confidence = max(state.confidence, VALIDATED_MIN_CONFIDENCE)

    @staticmethod
    def _error_state(state: PipelineState, error: RAGError) -> PipelineState:
        state.response = PIPELINE_ERROR_RESPONSE
        state.confidence = ERROR_CONFIDENCE
        state.needs_validation = False
        state.has_answer = False
        state.context = ""
        state.sources = []
        state.error_message = f"{error.code}: {error.message}"
        return state
