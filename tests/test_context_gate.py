"""Unit tests for the context sufficiency gate."""
import sys
sys.path.insert(0, 'backend')

import pytest
from unittest.mock import AsyncMock, Mock
from models.document import DocumentMetadata, RetrievedDocument
from models.pipeline import ContextJudgment
from services.context_gate import ContextGate, adaptive_threshold, build_context
from services.errors import ValidationError
from services.llm_client import LLMClientError, LLMError


def make_doc(content):
    return RetrievedDocument(content=content, metadata=DocumentMetadata(source="fees.pdf", type="fees"))


@pytest.fixture
def llm_client():
    client = Mock()
    client.generate_json = AsyncMock()
    return client


class TestAdaptiveThreshold:
    """Threshold selection from query keywords and context indicators."""

    def test_fee_query_with_fee_context(self):
        assert adaptive_threshold("what are the fees", "The total fee is Rs. 21,00,000") == 0.2

    def test_default_threshold(self):
        assert adaptive_threshold("random question", "") == 0.3

    def test_keyword_without_indicator_keeps_default(self):
        assert adaptive_threshold("what is the fee", "The campus is in Mumbai") == 0.3

    def test_placement_rule(self):
        assert adaptive_threshold("job prospects", "Top company recruiters") == 0.2


class TestBuildContext:

    def test_numbered_documents(self):
        context = build_context([make_doc("first"), make_doc("second")])
        assert context == "Document 1:\nfirst\n---\nDocument 2:\nsecond"


class TestContextGate:
    """Judge calls against a mocked LLM client."""

    @pytest.mark.asyncio
    async def test_no_documents_skips_model_call(self, llm_client):
        gate = ContextGate(llm_client)

        decision = await gate.check("What are the fees?", [])

        assert decision.has_answer is False
        assert decision.confidence == 0.0
        assert decision.context == ""
        llm_client.generate_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sufficient_context_kept(self, llm_client):
        llm_client.generate_json.return_value = ContextJudgment(has_answer=True, confidence=0.85)
        gate = ContextGate(llm_client)
        docs = [make_doc("The total fee is Rs. 21,00,000")]

        decision = await gate.check("what are the fees", docs)

        assert decision.has_answer is True
        assert decision.confidence == 0.85
        assert decision.context == "Document 1:\nThe total fee is Rs. 21,00,000"
        assert llm_client.generate_json.await_args.args[2] is ContextJudgment

    @pytest.mark.asyncio
    async def test_low_confidence_below_threshold_means_no_answer(self, llm_client):
        llm_client.generate_json.return_value = ContextJudgment(has_answer=True, confidence=0.25)
        gate = ContextGate(llm_client)

        decision = await gate.check("random question", [make_doc("Some unrelated passage")])

        assert decision.has_answer is False
        assert decision.confidence == 0.25
        assert decision.context == ""
        assert decision.threshold == 0.3

    @pytest.mark.asyncio
    async def test_lowered_threshold_accepts_factual_match(self, llm_client):
        llm_client.generate_json.return_value = ContextJudgment(has_answer=True, confidence=0.25)
        gate = ContextGate(llm_client)

        decision = await gate.check("what are the fees", [make_doc("The total fee is Rs. 21,00,000")])

        assert decision.has_answer is True
        assert decision.threshold == 0.2

    @pytest.mark.asyncio
    async def test_judge_says_no(self, llm_client):
        llm_client.generate_json.return_value = ContextJudgment(has_answer=False, confidence=0.9)
        gate = ContextGate(llm_client)

        decision = await gate.check("what are the fees", [make_doc("The total fee is Rs. 21,00,000")])

        assert decision.has_answer is False
        assert decision.confidence == 0.9

    @pytest.mark.asyncio
    async def test_malformed_output_raises_validation_error(self, llm_client):
        llm_client.generate_json.side_effect = ValidationError("Malformed ContextJudgment response")
        gate = ContextGate(llm_client)

        with pytest.raises(ValidationError):
            await gate.check("what are the fees", [make_doc("fee table")])

    @pytest.mark.asyncio
    async def test_llm_failure_raises_validation_error(self, llm_client):
        llm_client.generate_json.side_effect = LLMClientError(
            LLMError(code="TIMEOUT_ERROR", message="Request timed out.", details={})
        )
        gate = ContextGate(llm_client)

        with pytest.raises(ValidationError) as exc_info:
            await gate.check("what are the fees", [make_doc("fee table")])

        assert exc_info.value.details["error_code"] == "TIMEOUT_ERROR"
        assert exc_info.value.details["documents_count"] == 1
