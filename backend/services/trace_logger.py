"""JSON Lines trace of every answered question."""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from models.pipeline import PipelineState, RequestContext
from config import TRACE_LOG_PATH

logger = logging.getLogger(__name__)


class TraceLogger:
    """Append one JSON object per request to a trace file."""

    def __init__(self, log_file_path: str = TRACE_LOG_PATH):
        """
        Args:
            log_file_path: Trace file; parent directories are created on demand
        """
        self.log_file_path = Path(log_file_path)
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.log_file_path, "a", encoding="utf-8", buffering=1)
        logger.info(f"TraceLogger writing to {self.log_file_path}")

    def log_trace(
        self,
        question: str,
        state: PipelineState,
        ctx: RequestContext,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write the trace for one request and return the entry."""
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "session_id": session_id or ctx.session_id,
            "question": question,
            "composite_query": state.query,
            "stages": [
                {"stage": t.stage, "duration_ms": t.duration_ms, "outcome": t.outcome}
                for t in ctx.trace
            ],
            "is_relevant": state.is_relevant,
            "category": state.category,
            "has_answer": state.has_answer,
            "confidence": state.confidence,
            "sources": list(state.sources),
            "retrieved_document_count": len(state.retrieved_docs),
            "branch": state.branch,
            "evaluator_flags": list(state.evaluator_flags),
            "error_message": state.error_message,
        }
        self._write(entry)
        return entry

    def read_entries(self) -> List[Dict[str, Any]]:
        with open(self.log_file_path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def _write(self, entry: Dict[str, Any]) -> None:
        self._file.write(json.dumps(entry, default=str) + "\n")

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
