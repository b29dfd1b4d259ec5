"""Domain errors raised by pipeline stages."""
from typing import Any, Dict, Optional


class RAGError(Exception):
    """Base error for a pipeline stage failure."""

    code = "RAG_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(RAGError):
    """Structured LLM output could not be decoded, or a judge call failed."""

    code = "VALIDATION_ERROR"


class RetrievalError(RAGError):
    """The similarity-search service is unavailable or misconfigured."""

    code = "RETRIEVAL_ERROR"


class GenerationError(RAGError):
    """Generated answer text was empty or too short."""

    code = "GENERATION_ERROR"


class PipelineError(RAGError):
    """A stage failed with an error outside the domain hierarchy."""

    code = "PIPELINE_ERROR"
