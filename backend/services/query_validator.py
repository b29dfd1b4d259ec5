"""Relevance gate for incoming queries."""
import logging
from dataclasses import dataclass
from typing import Optional

from models.pipeline import RelevanceJudgment
from services.errors import ValidationError
from services.llm_client import LLMClient, LLMClientError
from services.prompts import QUERY_VALIDATION_PROMPT
from services import query_heuristics as heuristics
from config import JUDGE_MODEL

logger = logging.getLogger(__name__)

MAX_SHORT_QUERY_LENGTH = 3


@dataclass
class RelevanceDecision:
    is_relevant: bool
    category: Optional[str]
    confidence: float
    reason: str
    judged_relevant: bool


def heuristic_relevance(query: str) -> bool:
    """In-domain signals that override a negative classifier verdict."""
    return (
        heuristics.has_relevant_keywords(query)
        or heuristics.mentions_domain(query)
        or len(query.strip()) <= MAX_SHORT_QUERY_LENGTH
        or heuristics.is_known_term(query)
    )


class QueryValidator:
    """Classify whether a (composite) query belongs to the PGPM domain."""

    def __init__(self, llm_client: LLMClient, model: str = JUDGE_MODEL):
        self.llm_client = llm_client
        self.model = model

    async def validate(self, query: str) -> RelevanceDecision:
        """
        Run the classifier, then OR in the heuristic fallback.

        Raises:
            ValidationError: If the classifier call fails or its reply is malformed
        """
        prompt = QUERY_VALIDATION_PROMPT.format(
            query=query,
            categories="|".join(heuristics.QUERY_CATEGORIES),
        )
        try:
            judgment = await self.llm_client.generate_json(self.model, prompt, RelevanceJudgment, max_tokens=500)
        except LLMClientError as e:
            raise ValidationError(
                "Query validation failed",
                details={"query": query[:200], "error_code": e.error.code, "original_error": e.error.message},
            ) from e

        fallback = heuristic_relevance(query)
        decision = RelevanceDecision(
            is_relevant=judgment.is_relevant or fallback,
            category=judgment.category,
            confidence=judgment.confidence,
            reason=judgment.reason,
            judged_relevant=judgment.is_relevant,
        )
        logger.info(
            f"Query validation: relevant={decision.is_relevant} (judged={judgment.is_relevant}, "
            f"fallback={fallback}), category={decision.category}, confidence={decision.confidence:.2f}"
        )
        return decision
