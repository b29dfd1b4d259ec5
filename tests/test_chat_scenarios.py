"""End-to-end question scenarios through ChatService with real pipeline components."""
import sys
sys.path.insert(0, 'backend')

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch
from models.document import DocumentMetadata, RetrievedDocument
from models.pipeline import ContextJudgment, RelevanceJudgment
from services.chat_service import ChatService
from services.context_gate import ContextGate
from services.conversation_manager import ConversationManager
from services.embedding_model import EmbeddingModel
from services.generator import AnswerGenerator
from services.llm_client import LLMClient, LLMResponse
from services.output_evaluator import OutputEvaluator
from services.pipeline import RAGPipeline
from services.prompts import PIPELINE_ERROR_RESPONSE
from services.query_validator import QueryValidator
from services.retrieval_engine import RetrievalEngine
from services.vector_store import VectorStore


ADMISSIONS_TEXT = (
    "Admission to PGPM is through an online application, followed by a personal "
    "interview and an analytical assessment."
)
SELECTION_TEXT = (
    "The selection process weighs work experience, academic record and performance "
    "in the personal interview."
)
FEE_TEXT = "The total PGPM programme fee is Rs. 21,00,000, payable in four instalments."
SOCIAL_TEXT = (
    "Abhyudaya pairs PGPM participants with underprivileged children for a year of "
    "community mentoring."
)
DURATION_TEXT = "PGPM is a 15-month full-time programme with an international immersion module."


def doc(content, source, doc_type="general"):
    return RetrievedDocument(content=content, metadata=DocumentMetadata(source=source, type=doc_type))


def reply(text):
    return LLMResponse(text=text, tokens_input=420, tokens_output=60, latency_ms=35, model_used="llama-3.3-70b-versatile")


def make_llm(*verdicts, replies=()):
    """LLM whose classifier always accepts and whose context judge returns ``verdicts`` in order."""
    pending = list(verdicts)

    async def generate_json(model, prompt, schema, **kwargs):
        if schema is RelevanceJudgment:
            return RelevanceJudgment(is_relevant=True, category="admissions", reason="PGPM question", confidence=0.9)
        return pending.pop(0)

    llm = Mock(spec=LLMClient)
    llm.generate_json = AsyncMock(side_effect=generate_json)
    llm.generate = AsyncMock(side_effect=[reply(text) for text in replies])
    return llm


def make_store(*docs):
    store = Mock(spec=VectorStore)
    store.search = AsyncMock(return_value=list(docs))
    store.search_with_score = AsyncMock(return_value=[(d, 0.8) for d in docs])
    return store


def make_service(llm, store):
    pipeline = RAGPipeline(
        QueryValidator(llm),
        RetrievalEngine(store, max_docs=8, keyword_search_docs=10),
        ContextGate(llm),
        AnswerGenerator(llm, OutputEvaluator()),
    )
    return ChatService(pipeline, ConversationManager())


class TestChatScenarios:
    """Questions answered end to end with only the model and the store mocked."""

    @pytest.mark.asyncio
    async def test_follow_up_after_admissions_turn(self):
        llm = make_llm(
            ContextJudgment(has_answer=True, confidence=0.85, reasoning="Admission steps are listed"),
            ContextJudgment(has_answer=False, confidence=0.4, reasoning="Request is vague"),
            replies=(
                "Admission is through an online application, a personal interview and an assessment.",
                "Beyond the application, selection weighs work experience and academic record.",
            ),
        )
        store = make_store(
            doc(ADMISSIONS_TEXT, "admissions.pdf", "admissions"),
            doc(SELECTION_TEXT, "selection.pdf", "admissions"),
        )
        service = make_service(llm, store)

        first = await service.answer("What is the admission process?", session_id="s1")
        result = await service.answer("tell me more", session_id="s1")

        assert first.confidence == 0.85
        classifier_prompt = llm.generate_json.call_args_list[2].args[1]
        assert "Previous conversation context:" in classifier_prompt
        assert "Q: What is the admission process?" in classifier_prompt
        assert result.answer == "Beyond the application, selection weighs work experience and academic record."
        assert result.confidence == 0.8
        assert result.error_message is None
        assert result.retrieved_document_count == 2
        assert set(result.sources) == {"admissions.pdf", "selection.pdf"}

    @pytest.mark.asyncio
    async def test_fee_question_answered_from_passage(self):
        llm = make_llm(
            ContextJudgment(has_answer=False, confidence=0.15, reasoning="Unsure"),
            replies=("The total PGPM fee is Rs. 21,00,000, payable in four instalments.",),
        )
        service = make_service(llm, make_store(doc(FEE_TEXT, "fees.pdf", "fees")))

        result = await service.answer("What is the total PGPM fee?", session_id="s1")

        assert "21,00,000" in result.answer
        assert result.confidence >= 0.7
        assert result.sources == ["fees.pdf"]
        llm.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_salvaged_answers_reported_at_validated_floor(self):
        fee_llm = make_llm(
            ContextJudgment(has_answer=False, confidence=0.15),
            replies=("The total PGPM fee is Rs. 21,00,000, payable in four instalments.",),
        )
        social_llm = make_llm(
            ContextJudgment(has_answer=False, confidence=0.25),
            replies=("Abhyudaya pairs participants with underprivileged children for community mentoring.",),
        )

        fee = await make_service(fee_llm, make_store(doc(FEE_TEXT, "fees.pdf", "fees"))).answer(
            "What is the total PGPM fee?"
        )
        social = await make_service(social_llm, make_store(doc(SOCIAL_TEXT, "abhyudaya.pdf"))).answer(
            "How does Abhyudaya work with the community?"
        )

        assert fee.confidence == 0.8
        assert social.confidence == 0.8

    @pytest.mark.asyncio
    async def test_duration_salvage_keeps_its_own_confidence(self):
        llm = make_llm(ContextJudgment(has_answer=False, confidence=0.1))
        service = make_service(llm, make_store(doc(DURATION_TEXT, "overview.pdf")))

        result = await service.answer("How long is the programme?")

        assert "15 months" in result.answer
        assert result.confidence == 0.6
        llm.generate.assert_not_awaited()


def make_supabase_client(rows):
    client = MagicMock()
    client.rpc.return_value.execute = AsyncMock(return_value=Mock(data=rows))
    return client


async def supabase_store(rows):
    embedding_model = Mock(spec=EmbeddingModel)
    embedding_model.embed_text = AsyncMock(return_value=[0.1] * 768)
    store = VectorStore(embedding_model, supabase_url="https://test.supabase.co", supabase_key="test_key")
    with patch('services.vector_store.acreate_client', AsyncMock(return_value=make_supabase_client(rows))):
        await store.initialize()
    return store


class TestStoredMetadataShapes:
    """Rows with unusual metadata coming back from the search RPC."""

    @pytest.mark.asyncio
    async def test_numeric_section_is_answered(self):
        store = await supabase_store([{
            "content": ADMISSIONS_TEXT,
            "metadata": {"source": "admissions.pdf", "type": "admissions", "section": 3},
            "similarity": 0.82,
        }])
        llm = make_llm(
            ContextJudgment(has_answer=True, confidence=0.9),
            replies=("Admission is through an online application and a personal interview.",),
        )

        result = await make_service(llm, store).answer("What is the admission process?")

        assert result.answer == "Admission is through an online application and a personal interview."
        assert result.confidence == 0.9
        assert result.sources == ["admissions.pdf"]

    @pytest.mark.asyncio
    async def test_malformed_metadata_returns_apology(self):
        store = await supabase_store([{"content": FEE_TEXT, "metadata": "fees.pdf", "similarity": 0.8}])
        llm = make_llm()

        result = await make_service(llm, store).answer("What is the total PGPM fee?")

        assert result.answer == PIPELINE_ERROR_RESPONSE
        assert result.confidence == 0.1
        assert result.error_message.startswith("RETRIEVAL_ERROR")
        assert result.sources == []
