"""Unit tests for the relevance gate."""
import sys
sys.path.insert(0, 'backend')

import pytest
from unittest.mock import AsyncMock, Mock
from models.pipeline import RelevanceJudgment
from services.errors import ValidationError
from services.llm_client import LLMClientError, LLMError
from services.query_validator import QueryValidator, heuristic_relevance


def judged(is_relevant, confidence=0.9, category=None):
    return RelevanceJudgment(is_relevant=is_relevant, confidence=confidence, category=category, reason="test")


@pytest.fixture
def llm_client():
    client = Mock()
    client.generate_json = AsyncMock()
    return client


class TestHeuristicRelevance:

    def test_domain_keywords(self):
        assert heuristic_relevance("What is the PGPM eligibility?")

    def test_very_short_query(self):
        assert heuristic_relevance("hi")

    def test_known_term(self):
        assert heuristic_relevance("Sitaras")

    def test_off_topic(self):
        assert not heuristic_relevance("What is the weather in Paris today?")


class TestQueryValidator:
    """Classifier verdict combined with the heuristic fallback."""

    @pytest.mark.asyncio
    async def test_classifier_relevant(self, llm_client):
        llm_client.generate_json.return_value = judged(True, category="fees")

        decision = await QueryValidator(llm_client).validate("What are the fees?")

        assert decision.is_relevant is True
        assert decision.category == "fees"
        assert decision.judged_relevant is True

    @pytest.mark.asyncio
    async def test_heuristic_overrides_negative_verdict(self, llm_client):
        llm_client.generate_json.return_value = judged(False, confidence=0.7)

        decision = await QueryValidator(llm_client).validate("Tell me about SPJIMR campus")

        assert decision.is_relevant is True
        assert decision.judged_relevant is False
        assert decision.confidence == 0.7

    @pytest.mark.asyncio
    async def test_off_topic_rejected(self, llm_client):
        llm_client.generate_json.return_value = judged(False)

        decision = await QueryValidator(llm_client).validate("What is the weather in Paris today?")

        assert decision.is_relevant is False

    @pytest.mark.asyncio
    async def test_prompt_lists_categories(self, llm_client):
        llm_client.generate_json.return_value = judged(True)

        await QueryValidator(llm_client, model="judge").validate("What are the fees?")

        model, prompt, schema = llm_client.generate_json.await_args.args
        assert model == "judge"
        assert "What are the fees?" in prompt
        assert "admissions" in prompt
        assert schema is RelevanceJudgment

    @pytest.mark.asyncio
    async def test_llm_failure_becomes_validation_error(self, llm_client):
        llm_client.generate_json.side_effect = LLMClientError(
            LLMError(code="RATE_LIMIT_ERROR", message="Rate limit exceeded.", details={})
        )

        with pytest.raises(ValidationError) as exc_info:
            await QueryValidator(llm_client).validate("What are the fees?")

        assert exc_info.value.details["error_code"] == "RATE_LIMIT_ERROR"
