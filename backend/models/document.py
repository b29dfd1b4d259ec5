"""Retrieved document models."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class DocumentMetadata:
    """Metadata attached to an indexed passage."""
    source: str
    type: str = "general"  # admissions | curriculum | fees | placements | eligibility | general
    section: Optional[str] = None
    similarity_score: Optional[float] = None
    program: str = "PGPM"
    page: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]], score: Optional[float] = None) -> "DocumentMetadata":
        """Build metadata from the JSONB column returned by the search service."""
        raw = dict(raw or {})
        known = {"source", "type", "section", "similarityScore", "program", "page"}
        return cls(
            source=str(raw.get("source") or raw.get("sourceFile") or "unknown"),
            type=str(raw.get("type") or "general"),
            section=str(raw["section"]) if raw.get("section") is not None else None,
            similarity_score=score if score is not None else raw.get("similarityScore"),
            program=str(raw.get("program") or "PGPM"),
            page=raw.get("page"),
            extra={k: v for k, v in raw.items() if k not in known},
        )


@dataclass
class RetrievedDocument:
    """A passage returned by similarity search for a single request."""
    content: str
    metadata: DocumentMetadata

    @property
    def source(self) -> str:
        return self.metadata.source
