"""Retrieval engine: query enhancement, multi-pass search, dedupe and reordering."""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from models.document import RetrievedDocument
from services.vector_store import VectorStore
from services.errors import RetrievalError
from services import query_heuristics as heuristics
from config import MAX_RETRIEVAL_DOCS, KEYWORD_SEARCH_DOCS

logger = logging.getLogger(__name__)

BOOSTER_TRIGGER_COUNT = 4
KEYWORD_TRIGGER_COUNT = 2
MIN_CONTENT_LENGTH = 50
DEDUPE_PREFIX_LENGTH = 200
MAX_SOURCES = 3

DURATION_BOOSTER = "{query} 18-month 18 month 15-month 15 month program duration length months"
SOCIAL_BOOSTER = (
    "{query} social projects Abhyudaya DoCC Development Corporate Citizenship "
    "underprivileged community social impact social work NGO"
)
OVERVIEW_BOOSTER = "SPJIMR PGPM overview curriculum admissions placements international immersion"
KEYWORD_ANCHOR_QUERY = "SPJIMR PGPM program {term} social projects community work"


@dataclass
class RetrievalResult:
    """Ordered documents for one query plus their top cited sources."""
    documents: List[RetrievedDocument] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    enhanced_query: str = ""


def dedupe_key(doc: RetrievedDocument) -> str:
    """Whitespace-normalized first 200 characters of the content."""
    return re.sub(r"\s+", " ", doc.content[:DEDUPE_PREFIX_LENGTH]).strip()


def dedupe_documents(docs: Iterable[RetrievedDocument]) -> List[RetrievedDocument]:
    seen = set()
    unique = []
    for doc in docs:
        key = dedupe_key(doc)
        if key not in seen:
            seen.add(key)
            unique.append(doc)
    return unique


def build_metadata_filter(query: str) -> Dict[str, Any]:
    """Metadata type constraint inferred from the query; the domain constant is added by the store."""
    doc_type = heuristics.infer_document_type(query)
    return {"type": doc_type} if doc_type else {}


def relevance_score(doc: RetrievedDocument, query: str) -> int:
    query_lower = query.lower()
    section = (doc.metadata.section or "").lower()
    content = doc.content.lower()

    score = 0
    for term in (t for t in query_lower.split(" ") if len(t) > 2):
        if term in section:
            score += 2
        if term in content:
            score += 1

    keyword = heuristics.TYPE_PREFERENCES.get(doc.metadata.type)
    if keyword and keyword in query_lower:
        score += 3
    return score


def reorder_documents(docs: List[RetrievedDocument], query: str) -> List[RetrievedDocument]:
    """Stable sort by descending heuristic relevance."""
    return sorted(docs, key=lambda doc: relevance_score(doc, query), reverse=True)


def extract_sources(docs: Iterable[RetrievedDocument], limit: int = MAX_SOURCES) -> List[str]:
    sources: List[str] = []
    for doc in docs:
        if doc.source not in sources:
            sources.append(doc.source)
            if len(sources) == limit:
                break
    return sources


def booster_query(query: str) -> Optional[str]:
    """Keyword-augmented search text for an under-served intent, or None."""
    if heuristics.wants_duration(query):
        return DURATION_BOOSTER.format(query=query)
    if heuristics.wants_social_impact(query) or heuristics.is_specific_term(query):
        return SOCIAL_BOOSTER.format(query=query)
    if heuristics.is_ambiguous_query(query):
        return OVERVIEW_BOOSTER
    return None


class RetrievalEngine:
    """Retrieve, merge and order passages for a composite query."""

    def __init__(
        self,
        vector_store: VectorStore,
        max_docs: int = MAX_RETRIEVAL_DOCS,
        keyword_search_docs: int = KEYWORD_SEARCH_DOCS,
    ):
        """
        Args:
            vector_store: Initialized VectorStore used for every search pass
            max_docs: k for the primary and booster passes
            keyword_search_docs: k for the keyword-anchor pass
        """
        self.vector_store = vector_store
        self.max_docs = max_docs
        self.keyword_search_docs = keyword_search_docs
        logger.info(f"Initialized RetrievalEngine: k={max_docs}")

    async def retrieve(self, query: str) -> RetrievalResult:
        """
        Retrieve passages for ``query``.

        1. Primary search on the enhanced query, filtered by inferred type
        2. Booster search when fewer than 4 hits came back for a duration,
           social, ambiguous or specific-term query
        3. Keyword-anchor search when a specific term still has fewer than
           2 hits, keeping only passages that contain the term
        4. Dedupe, drop passages of 50 characters or fewer, reorder

        Raises:
            RetrievalError: If the primary or booster search fails
        """
        enhanced = heuristics.enhance_query(query)
        metadata_filter = build_metadata_filter(query)
        logger.info(f"Searching for top {self.max_docs} documents (filter={metadata_filter})")

        documents = dedupe_documents(await self.vector_store.search(enhanced, self.max_docs, metadata_filter))

        booster = booster_query(query)
        if booster and len(documents) < BOOSTER_TRIGGER_COUNT:
            extra = await self.vector_store.search(booster, self.max_docs, metadata_filter)
            logger.info(f"Booster search found {len(extra)} additional documents")
            documents = dedupe_documents(documents + extra)

        if heuristics.is_specific_term(query) and len(documents) < KEYWORD_TRIGGER_COUNT:
            documents = dedupe_documents(documents + await self._keyword_anchor_search(query.strip()))

        filtered = [doc for doc in documents if len(doc.content.strip()) > MIN_CONTENT_LENGTH]
        ordered = reorder_documents(filtered, query)
        sources = extract_sources(ordered)

        logger.info(
            f"Retrieved {len(ordered)} documents "
            f"(before filtering: {len(documents)}, sources: {sources})"
        )
        return RetrievalResult(documents=ordered, sources=sources, enhanced_query=enhanced)

    async def _keyword_anchor_search(self, term: str) -> List[RetrievedDocument]:
        """Broader search for a specific term, keeping only whole-word matches."""
        pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
        try:
            results = await self.vector_store.search_with_score(
                KEYWORD_ANCHOR_QUERY.format(term=term), self.keyword_search_docs
            )
        except RetrievalError as e:
            logger.warning(f"Keyword search for {term!r} failed: {e.message}")
            return []

        matching = [doc for doc, _ in results if pattern.search(doc.content)]
        logger.info(f"Keyword search found {len(matching)} documents containing {term!r}")
        return matching
