"""Unit tests for VectorStore class."""
import sys
sys.path.insert(0, 'backend')

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch
from services.vector_store import VectorStore
from services.embedding_model import EmbeddingModel
from services.errors import RetrievalError


def make_embedding_model():
    model = Mock(spec=EmbeddingModel)
    model.embed_text = AsyncMock(return_value=[0.1] * 768)
    return model


def make_client(rows=None, count=3, metadata_rows=None):
    client = MagicMock()
    client.rpc.return_value.execute = AsyncMock(return_value=Mock(data=rows or []))
    select = client.table.return_value.select.return_value
    select.limit.return_value.execute = AsyncMock(return_value=Mock(count=count))
    select.execute = AsyncMock(return_value=Mock(data=metadata_rows or []))
    client.postgrest.aclose = AsyncMock()
    return client


async def initialized_store(client, **kwargs):
    store = VectorStore(
        embedding_model=make_embedding_model(),
        supabase_url="https://test.supabase.co",
        supabase_key="test_key",
        **kwargs
    )
    with patch('services.vector_store.acreate_client', AsyncMock(return_value=client)):
        await store.initialize()
    return store


class TestVectorStore:
    """Test suite for VectorStore."""

    def test_initialization_without_credentials(self):
        """Test construction fails without Supabase credentials."""
        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY"):
            VectorStore(make_embedding_model(), supabase_url=None, supabase_key="test_key")

        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY"):
            VectorStore(make_embedding_model(), supabase_url="https://test.supabase.co", supabase_key=None)

    @pytest.mark.asyncio
    async def test_initialize_opens_client_once(self):
        """Test initialize creates the async client and is idempotent."""
        client = make_client()
        store = VectorStore(make_embedding_model(), "https://test.supabase.co", "test_key")

        with patch('services.vector_store.acreate_client', AsyncMock(return_value=client)) as mock_create:
            await store.initialize()
            await store.initialize()

        mock_create.assert_awaited_once_with("https://test.supabase.co", "test_key")
        assert store.is_initialized

    @pytest.mark.asyncio
    async def test_search_before_initialize_raises(self):
        """Test searching an unopened store is a retrieval error."""
        store = VectorStore(make_embedding_model(), "https://test.supabase.co", "test_key")

        with pytest.raises(RetrievalError, match="not initialized"):
            await store.search("fees", k=5)

    @pytest.mark.asyncio
    async def test_search_merges_domain_and_metadata_filters(self):
        """Test the RPC receives the embedding, k and the merged filter."""
        rows = [
            {"content": "Total fee is Rs. 21,00,000", "metadata": {"source": "fees.pdf", "type": "fees"}, "similarity": 0.82},
        ]
        client = make_client(rows=rows)
        store = await initialized_store(client)

        docs = await store.search("What is the fee?", k=8, metadata_filter={"type": "fees"})

        client.rpc.assert_called_once_with(
            "match_documents",
            {
                "query_embedding": [0.1] * 768,
                "match_count": 8,
                "filter": {"program": "PGPM", "type": "fees"},
            },
        )
        assert len(docs) == 1
        assert docs[0].content == "Total fee is Rs. 21,00,000"
        assert docs[0].source == "fees.pdf"
        assert docs[0].metadata.type == "fees"
        assert docs[0].metadata.similarity_score == 0.82

    @pytest.mark.asyncio
    async def test_search_with_score_clamps_similarity(self):
        """Test similarity scores are clamped into [0, 1]."""
        rows = [
            {"content": "a", "metadata": {"source": "a.pdf"}, "similarity": 1.2},
            {"content": "b", "metadata": None, "similarity": -0.1},
        ]
        store = await initialized_store(make_client(rows=rows))

        results = await store.search_with_score("query", k=2)

        assert [score for _, score in results] == [1.0, 0.0]
        assert results[1][0].source == "unknown"

    @pytest.mark.asyncio
    async def test_empty_query_raises(self):
        """Test empty query text is rejected."""
        store = await initialized_store(make_client())

        with pytest.raises(RetrievalError, match="Query cannot be empty"):
            await store.search("   ", k=5)

    @pytest.mark.asyncio
    async def test_rpc_failure_raises_retrieval_error(self):
        """Test transport failures become RetrievalError."""
        client = make_client()
        client.rpc.return_value.execute.side_effect = Exception("connection refused")
        store = await initialized_store(client)

        with pytest.raises(RetrievalError) as exc_info:
            await store.search("fees", k=5)

        assert exc_info.value.details["original_error"] == "connection refused"

    @pytest.mark.asyncio
    async def test_embedding_failure_raises_retrieval_error(self):
        """Test embedding failures become RetrievalError."""
        store = await initialized_store(make_client())
        store.embedding_model.embed_text.side_effect = RuntimeError("Rate limit exceeded")

        with pytest.raises(RetrievalError):
            await store.search("fees", k=5)

    @pytest.mark.asyncio
    async def test_non_string_section_is_coerced(self):
        """Test numeric section values come back as text."""
        rows = [{"content": "Fee table", "metadata": {"source": "fees.pdf", "section": 3}, "similarity": 0.7}]
        store = await initialized_store(make_client(rows=rows))

        docs = await store.search("fees", k=5)

        assert docs[0].metadata.section == "3"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("row", [
        {"content": "Fee table", "metadata": "fees.pdf", "similarity": 0.7},
        {"content": "Fee table", "metadata": {"source": "fees.pdf"}, "similarity": "high"},
    ])
    async def test_undecodable_row_raises_retrieval_error(self, row):
        """Test malformed rows from the search service become RetrievalError."""
        store = await initialized_store(make_client(rows=[row]))

        with pytest.raises(RetrievalError, match="Similarity search failed"):
            await store.search("fees", k=5)

    @pytest.mark.asyncio
    async def test_get_statistics(self):
        """Test statistics count documents overall and by type."""
        metadata_rows = [
            {"metadata": {"type": "fees"}},
            {"metadata": {"type": "fees"}},
            {"metadata": {"type": "admissions"}},
            {"metadata": {}},
        ]
        store = await initialized_store(make_client(count=4, metadata_rows=metadata_rows))

        stats = await store.get_statistics()

        assert stats == {
            "total_documents": 4,
            "documents_by_type": {"fees": 2, "admissions": 1, "unknown": 1},
        }

    @pytest.mark.asyncio
    async def test_health_check(self):
        """Test health reflects reachability of the table."""
        store = await initialized_store(make_client(count=2))
        healthy = await store.health_check()
        assert healthy["status"] == "healthy"
        assert healthy["details"]["total_documents"] == 2

        broken = make_client()
        broken.table.return_value.select.return_value.limit.return_value.execute.side_effect = Exception("timeout")
        unhealthy = await (await initialized_store(broken)).health_check()
        assert unhealthy["status"] == "unhealthy"
        assert unhealthy["details"]["error"] == "timeout"

    @pytest.mark.asyncio
    async def test_close(self):
        """Test close releases the client."""
        client = make_client()
        store = await initialized_store(client)

        await store.close()

        client.postgrest.aclose.assert_awaited_once()
        assert not store.is_initialized
