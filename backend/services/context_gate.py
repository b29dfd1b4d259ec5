"""Context sufficiency gate with an adaptive confidence threshold."""
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from models.document import RetrievedDocument
from models.pipeline import ContextJudgment
from services.errors import ValidationError
from services.llm_client import LLMClient, LLMClientError
from services.prompts import CONTEXT_VALIDATION_PROMPT
from config import JUDGE_MODEL

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3

# (query keywords, context indicators, threshold); first match wins
THRESHOLD_RULES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...], float], ...] = (
    (("fee", "cost", "price"), ("fee", "cost", "rs.", "rupees", "lakh"), 0.2),
    (("duration", "length", "time"), ("month", "year", "duration"), 0.2),
    (("eligibility", "requirement"), ("eligib", "require", "criteria"), 0.2),
    (("deadline", "date"), ("deadline", "date", "last date"), 0.2),
    (("salary", "package"), ("salary", "lpa", "package", "compensation"), 0.2),
    (("admission", "application"), ("admission", "application", "apply"), 0.2),
    (("curriculum", "subject", "course"), ("curriculum", "subject", "course", "module"), 0.2),
    (("placement", "job", "career"), ("placement", "job", "career", "company"), 0.2),
)


@dataclass
class ContextDecision:
    has_answer: bool
    confidence: float
    context: str
    threshold: float
    reasoning: str = ""


def build_context(docs: Sequence[RetrievedDocument]) -> str:
    """Join passages with numbered "Document N:" markers."""
    return "\n---\n".join(f"Document {index}:\n{doc.content}" for index, doc in enumerate(docs, start=1))


def adaptive_threshold(query: str, context: str) -> float:
    """Lower the bar when a factual query meets a context that visibly holds such facts."""
    query_lower = query.lower()
    context_lower = context.lower()
    for keywords, indicators, threshold in THRESHOLD_RULES:
        if any(k in query_lower for k in keywords) and any(i in context_lower for i in indicators):
            return threshold
    return DEFAULT_THRESHOLD


class ContextGate:
    """Ask a judge model whether retrieved passages can answer the query."""

    def __init__(self, llm_client: LLMClient, model: str = JUDGE_MODEL):
        self.llm_client = llm_client
        self.model = model

    async def check(self, query: str, docs: List[RetrievedDocument]) -> ContextDecision:
        """
        Judge the retrieved passages against the query.

        No documents short-circuits to "no answer" without a model call. The
        returned confidence is always the judge's own, while ``has_answer``
        also requires it to clear the adaptive threshold; the context is only
        kept when ``has_answer`` holds.

        Raises:
            ValidationError: If the judge call fails or returns malformed JSON
        """
        if not docs:
            logger.info("No documents retrieved, skipping context check")
            return ContextDecision(has_answer=False, confidence=0.0, context="", threshold=DEFAULT_THRESHOLD)

        context = build_context(docs)
        prompt = CONTEXT_VALIDATION_PROMPT.format(documents=context, query=query)
        try:
            judgment = await self.llm_client.generate_json(self.model, prompt, ContextJudgment, max_tokens=300)
        except LLMClientError as e:
            raise ValidationError(
                "Context validation failed",
                details={"documents_count": len(docs), "error_code": e.error.code, "original_error": e.error.message},
            ) from e

        threshold = adaptive_threshold(query, context)
        has_answer = judgment.has_answer and judgment.confidence >= threshold
        if judgment.has_answer and not has_answer:
            logger.info(f"Judge confidence {judgment.confidence} below threshold {threshold}, marking as no answer")

        logger.info(
            f"Context check: has_answer={has_answer}, confidence={judgment.confidence:.2f}, "
            f"threshold={threshold}, context_chars={len(context)}"
        )
        return ContextDecision(
            has_answer=has_answer,
            confidence=judgment.confidence,
            context=context if has_answer else "",
            threshold=threshold,
            reasoning=judgment.reasoning or "",
        )
