"""Pipeline state, judgment schemas and the per-request context."""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .document import RetrievedDocument

TokenSink = Callable[[str], None]
StatusSink = Callable[[str], None]


class RelevanceJudgment(BaseModel):
    """Structured output of the relevance classifier."""
    model_config = ConfigDict(populate_by_name=True)

    is_relevant: bool = Field(alias="isRelevant")
    category: Optional[str] = None
    reason: str = ""
    confidence: float = Field(ge=0.0, le=1.0)


class ContextJudgment(BaseModel):
    """Structured output of the context sufficiency judge."""
    model_config = ConfigDict(populate_by_name=True)

    has_answer: bool = Field(alias="hasAnswer")
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: Optional[str] = None


@dataclass
class PipelineState:
    """The single record threaded through every pipeline stage."""
    query: str
    question: Optional[str] = None  # raw user text when query is a composite
    is_relevant: bool = False
    retrieved_docs: List[RetrievedDocument] = field(default_factory=list)
    has_answer: bool = False
    context: str = ""
    response: str = ""
    needs_validation: bool = False
    confidence: float = 0.0
    sources: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    category: Optional[str] = None
    evaluator_flags: List[str] = field(default_factory=list)
    branch: Optional[str] = None  # generator branch that produced the response


@dataclass
class StageTrace:
    """Outcome of one stage execution."""
    stage: str
    duration_ms: int
    outcome: str


@dataclass
class RequestContext:
    """
    Request-scoped collaborators passed explicitly through every stage.

    Nothing here is shared between requests: the token sink, the status sink
    and the trace all belong to one call of the pipeline.
    """
    session_id: Optional[str] = None
    on_token: Optional[TokenSink] = None
    on_status: Optional[StatusSink] = None
    trace: List[StageTrace] = field(default_factory=list)

    def emit_status(self, message: str) -> None:
        if self.on_status is not None:
            self.on_status(message)

    def record(self, stage: str, duration_ms: int, outcome: str) -> None:
        self.trace.append(StageTrace(stage=stage, duration_ms=duration_ms, outcome=outcome))

    @property
    def stages_run(self) -> List[str]:
        return [entry.stage for entry in self.trace]
