"""Answer generation: relevance rejection, evidence salvage and grounded answers."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from models.document import RetrievedDocument
from models.pipeline import PipelineState, RequestContext
from services.context_gate import build_context
from services.errors import GenerationError
from services.llm_client import LLMClient, LLMClientError
from services.output_evaluator import OutputEvaluator
from services import prompts
from services import query_heuristics as heuristics
from config import GENERATION_MODEL

logger = logging.getLogger(__name__)

MIN_RESPONSE_LENGTH = 20
DEFAULT_GROUNDED_CONFIDENCE = 0.8

FEE_SALVAGE_CONFIDENCE = 0.7
FOLLOW_UP_SALVAGE_CONFIDENCE = 0.8
LONG_DURATION_CONFIDENCE = 0.9
SHORT_DURATION_CONFIDENCE = 0.6
SOCIAL_SALVAGE_CONFIDENCE = 0.75
FALLBACK_CONFIDENCE = 0.3
NO_INFORMATION_CONFIDENCE = 0.2
FAILED_CONFIDENCE = 0.1


@dataclass
class GeneratedAnswer:
    """Outcome of the generate stage."""
    response: str
    confidence: float
    needs_validation: bool
    branch: str
    error_message: Optional[str] = None
    flags: List[str] = field(default_factory=list)


def _any_contains(docs: List[RetrievedDocument], indicators) -> bool:
    return any(any(i in doc.content.lower() for i in indicators) for doc in docs)


def find_duration_months(docs: List[RetrievedDocument]) -> Optional[int]:
    """18 if any passage mentions an 18-month programme, else 15 if one mentions 15 months."""
    found = set()
    for doc in docs:
        found |= heuristics.month_mentions(doc.content)
    if 18 in found:
        return 18
    if 15 in found:
        return 15
    return None


class AnswerGenerator:
    """Produce the final answer for a pipeline state."""

    def __init__(
        self,
        llm_client: LLMClient,
        evaluator: Optional[OutputEvaluator] = None,
        model: str = GENERATION_MODEL,
        max_tokens: int = 800,
        temperature: float = 0.1,
    ):
        self.llm_client = llm_client
        self.evaluator = evaluator or OutputEvaluator()
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(self, state: PipelineState, ctx: RequestContext) -> GeneratedAnswer:
        """
        Pick and run exactly one branch.

        1. Irrelevant query: fixed template, confidence 1.0
        2. Insufficient context: first applicable salvage (fee, follow-up,
           duration, social), else a graceful non-answer
        3. Sufficient context: grounded answer at the judge's confidence

        Raises:
            GenerationError: If a grounded answer from sufficient context is
                empty or shorter than 20 characters
        """
        if not state.is_relevant:
            logger.info("Query not relevant, using template response")
            return GeneratedAnswer(
                response=prompts.NOT_RELEVANT_RESPONSE,
                confidence=1.0,
                needs_validation=False,
                branch="not_relevant",
            )

        try:
            if not state.has_answer or not state.context.strip():
                return await self._salvage(state, ctx)
            return await self._answer_from_context(state, ctx)
        except LLMClientError as e:
            logger.error(
                f"Generation failed: {e.error.message}",
                extra={"session_id": ctx.session_id, "error_code": e.error.code},
            )
            return GeneratedAnswer(
                response=prompts.VERIFICATION_FAILED_RESPONSE,
                confidence=FAILED_CONFIDENCE,
                needs_validation=False,
                branch="failed",
                error_message=e.error.message,
            )

    async def _answer_from_context(self, state: PipelineState, ctx: RequestContext) -> GeneratedAnswer:
        logger.info(f"Generating grounded response from {len(state.context)} characters of context")
        response = await self._grounded(state.context, state.query, ctx)

        if len(response.strip()) < MIN_RESPONSE_LENGTH:
            raise GenerationError(
                "Generated response is too short or empty",
                details={"response_length": len(response), "query": state.query[:200]},
            )

        flags = self.evaluator.evaluate(response, len(state.retrieved_docs))
        if "hedging" in flags:
            logger.warning("Response contains hedging language, flagging for validation")

        return GeneratedAnswer(
            response=response,
            confidence=state.confidence or DEFAULT_GROUNDED_CONFIDENCE,
            needs_validation=True,
            branch="grounded",
            flags=flags,
        )

    async def _salvage(self, state: PipelineState, ctx: RequestContext) -> GeneratedAnswer:
        docs = state.retrieved_docs
        # Intent comes from the user's own words, not the conversational framing
        intent = state.question or state.query
        logger.info(f"Insufficient context (has_answer={state.has_answer}, docs={len(docs)}), trying salvage")

        if heuristics.wants_fees(intent) and _any_contains(docs, heuristics.FEE_INDICATORS):
            return await self._salvage_from_documents(state, ctx, FEE_SALVAGE_CONFIDENCE, "fee_salvage")

        if docs and (
            heuristics.is_follow_up_query(intent)
            or heuristics.is_stats_query(intent)
            or heuristics.is_broad_information_query(intent)
        ):
            return await self._salvage_from_documents(state, ctx, FOLLOW_UP_SALVAGE_CONFIDENCE, "follow_up_salvage")

        if heuristics.wants_duration(intent):
            months = find_duration_months(docs)
            if months is not None:
                return GeneratedAnswer(
                    response=prompts.DURATION_ANSWER.format(months=months),
                    confidence=LONG_DURATION_CONFIDENCE if months == 18 else SHORT_DURATION_CONFIDENCE,
                    needs_validation=False,
                    branch="duration_salvage",
                )

        if heuristics.wants_social_impact(intent) and _any_contains(docs, heuristics.SOCIAL_INDICATORS):
            return await self._salvage_from_documents(state, ctx, SOCIAL_SALVAGE_CONFIDENCE, "social_salvage")

        return await self._graceful_non_answer(state, ctx)

    async def _salvage_from_documents(
        self, state: PipelineState, ctx: RequestContext, confidence: float, branch: str
    ) -> GeneratedAnswer:
        logger.info(f"Salvage branch {branch}: generating from {len(state.retrieved_docs)} documents")
        response = await self._grounded(build_context(state.retrieved_docs), state.query, ctx)
        return GeneratedAnswer(
            response=response,
            confidence=confidence,
            needs_validation=True,
            branch=branch,
            flags=self.evaluator.evaluate(response, len(state.retrieved_docs)),
        )

    async def _graceful_non_answer(self, state: PipelineState, ctx: RequestContext) -> GeneratedAnswer:
        prompt = prompts.FALLBACK_RESPONSE_PROMPT.format(
            query=state.query, reason=prompts.INSUFFICIENT_INFORMATION_REASON
        )
        try:
            result = await self.llm_client.generate(
                self.model, prompt, max_tokens=self.max_tokens,
                temperature=self.temperature, on_token=ctx.on_token,
            )
        except LLMClientError as e:
            logger.error(f"Fallback response generation failed: {e.error.message}")
            return GeneratedAnswer(
                response=prompts.NO_INFORMATION_RESPONSE,
                confidence=NO_INFORMATION_CONFIDENCE,
                needs_validation=False,
                branch="no_information",
            )

        return GeneratedAnswer(
            response=result.text,
            confidence=FALLBACK_CONFIDENCE,
            needs_validation=False,
            branch="fallback",
        )

    async def _grounded(self, context: str, query: str, ctx: RequestContext) -> str:
        prompt = prompts.GROUNDED_RESPONSE_PROMPT.format(context=context, query=query)
        result = await self.llm_client.generate(
            self.model, prompt, max_tokens=self.max_tokens,
            temperature=self.temperature, on_token=ctx.on_token,
        )
        return result.text
