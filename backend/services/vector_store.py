"""Similarity search over the PGPM corpus using Supabase pgvector."""
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple
from supabase import acreate_client, AsyncClient
from models.document import DocumentMetadata, RetrievedDocument
from services.embedding_model import EmbeddingModel
from services.errors import RetrievalError
from config import SUPABASE_URL, SUPABASE_KEY, VECTOR_TABLE, MATCH_FUNCTION, DOMAIN_FILTER

logger = logging.getLogger(__name__)


class VectorStore:
    """
    Client for the ``match_documents`` similarity-search RPC.

    The store is constructed explicitly and injected into the retriever.
    ``initialize()`` must be awaited before searching and ``close()`` on
    shutdown. The expected SQL function is::

        match_documents(query_embedding vector, match_count int, filter jsonb)
          RETURNS TABLE (id bigint, content text, metadata jsonb, similarity float)

    filtering rows with ``metadata @> filter``.
    """

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = VECTOR_TABLE,
        match_function: str = MATCH_FUNCTION,
        domain_filter: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            embedding_model: EmbeddingModel instance for query embeddings
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Table holding content, metadata and embedding columns
            match_function: Name of the similarity-search RPC
            domain_filter: Metadata constraint merged into every search

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.embedding_model = embedding_model
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.table_name = table_name
        self.match_function = match_function
        self.domain_filter = dict(DOMAIN_FILTER if domain_filter is None else domain_filter)
        self.client: Optional[AsyncClient] = None

        logger.info(f"Configured VectorStore with table: {table_name}")

    @property
    def is_initialized(self) -> bool:
        return self.client is not None

    async def initialize(self) -> None:
        """Open the Supabase connection."""
        if self.client is not None:
            return
        self.client = await acreate_client(self.supabase_url, self.supabase_key)
        logger.info("VectorStore initialized")

    async def close(self) -> None:
        """Release the Supabase connection."""
        if self.client is None:
            return
        await self.client.postgrest.aclose()
        self.client = None
        logger.info("VectorStore closed")

    async def search(
        self,
        query_text: str,
        k: int = 5,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[RetrievedDocument]:
        """
        Find the k passages most similar to ``query_text``.

        Raises:
            RetrievalError: If the store is unusable or the search fails
        """
        return [doc for doc, _ in await self.search_with_score(query_text, k, metadata_filter)]

    async def search_with_score(
        self,
        query_text: str,
        k: int = 5,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[Tuple[RetrievedDocument, float]]:
        """
        Like ``search`` but also returns the raw similarity of each hit.

        Raises:
            RetrievalError: If the store is unusable or the search fails
        """
        if self.client is None:
            raise RetrievalError("Vector store not initialized. Call initialize() first.")

        query_text = (query_text or "").strip()
        if not query_text:
            raise RetrievalError("Query cannot be empty")
        if k <= 0:
            raise RetrievalError("k must be positive", details={"k": k})

        search_filter = {**self.domain_filter, **(metadata_filter or {})}
        logger.debug(f"Similarity search: k={k}, filter={search_filter}, query={query_text[:50]!r}")

        try:
            embedding = await self.embedding_model.embed_text(query_text)
            response = await self.client.rpc(
                self.match_function,
                {
                    "query_embedding": embedding,
                    "match_count": k,
                    "filter": search_filter,
                },
            ).execute()

            results = []
            for row in response.data or []:
                score = max(0.0, min(1.0, float(row.get("similarity") or 0.0)))
                doc = RetrievedDocument(
                    content=str(row.get("content") or ""),
                    metadata=DocumentMetadata.from_dict(row.get("metadata"), score=score),
                )
                results.append((doc, score))
        except Exception as e:
            logger.error(f"Similarity search failed: {e}", exc_info=True)
            raise RetrievalError(
                "Similarity search failed",
                details={"query": query_text[:200], "original_error": str(e)},
            ) from e

        logger.debug(f"Found {len(results)} documents for query")
        return results

    async def get_document_count(self) -> int:
        if self.client is None:
            raise RetrievalError("Vector store not initialized. Call initialize() first.")
        response = await self.client.table(self.table_name).select("id", count="exact").limit(1).execute()
        return response.count or 0

    async def get_statistics(self) -> Dict[str, Any]:
        """
        Count indexed passages, overall and by metadata type.

        Returns:
            Dict with total_documents and documents_by_type
        """
        if self.client is None:
            raise RetrievalError("Vector store not initialized. Call initialize() first.")

        try:
            total = await self.get_document_count()
            response = await self.client.table(self.table_name).select("metadata").execute()
        except Exception as e:
            logger.error(f"Failed to read vector store statistics: {e}")
            raise RetrievalError("Failed to read vector store statistics", details={"original_error": str(e)}) from e

        by_type = Counter((row.get("metadata") or {}).get("type") or "unknown" for row in response.data or [])
        return {
            "total_documents": total,
            "documents_by_type": dict(by_type),
        }

    async def health_check(self) -> Dict[str, Any]:
        """Report whether the table is reachable, with statistics when it is."""
        if self.client is None:
            return {"status": "unhealthy", "details": {"error": "not initialized"}}

        try:
            stats = await self.get_statistics()
        except RetrievalError as e:
            return {"status": "unhealthy", "details": {"error": e.details.get("original_error", e.message)}}

        return {"status": "healthy", "details": {"initialized": True, **stats}}
