"""Main entry point for the PGPM Admissions Assistant API."""
import logging
import time
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Header, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from config import CORS_ORIGINS, LOG_LEVEL, PORT, TRACE_LOG_PATH, is_development, validate_config
from logger import setup_logging
from models.api import ChatRequest, ChatResponse, HistoryResponse, HistoryStats, TurnOut
from services.chat_service import ChatService
from services.context_gate import ContextGate
from services.conversation_manager import ConversationManager
from services.embedding_model import EmbeddingModel
from services.errors import RetrievalError
from services.generator import AnswerGenerator
from services.llm_client import LLMClient
from services.output_evaluator import OutputEvaluator
from services.pipeline import RAGPipeline
from services.query_validator import QueryValidator
from services.retrieval_engine import RetrievalEngine
from services.streaming import AnswerStream
from services.trace_logger import TraceLogger
from services.vector_store import VectorStore

# Initialize logging
logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-ID"

# Initialize FastAPI app
app = FastAPI(
    title="PGPM Admissions Assistant",
    description="Question answering over SPJIMR PGPM programme documents",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SESSION_HEADER],
)

# Initialize services (will be done on startup)
vector_store: VectorStore = None
chat_service: ChatService = None
trace_logger: TraceLogger = None
started_at = time.time()


@app.on_event("startup")
async def startup_event():
    """Validate configuration and build the service graph."""
    global vector_store, chat_service, trace_logger

    setup_logging(LOG_LEVEL)
    validate_config()
    logger.info("Initializing PGPM Admissions Assistant services...")

    try:
        embedding_model = EmbeddingModel()
        vector_store = VectorStore(embedding_model)
        await vector_store.initialize()

        llm_client = LLMClient()
        pipeline = RAGPipeline(
            validator=QueryValidator(llm_client),
            retriever=RetrievalEngine(vector_store),
            context_gate=ContextGate(llm_client),
            generator=AnswerGenerator(llm_client, OutputEvaluator()),
        )
        trace_logger = TraceLogger(TRACE_LOG_PATH)
        chat_service = ChatService(pipeline, ConversationManager(), trace_logger)

        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Release external connections."""
    if vector_store is not None:
        await vector_store.close()
    if trace_logger is not None:
        trace_logger.close()
    logger.info("Services shut down")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_service() -> ChatService:
    if chat_service is None:
        raise HTTPException(
            status_code=503,
            detail={"error": "RAG pipeline not initialized", "code": "PIPELINE_NOT_READY"}
        )
    return chat_service


def _validate_question(question: str) -> str:
    question = question.strip()
    if not question:
        raise HTTPException(
            status_code=400,
            detail={"error": "Question is required and must be a non-empty string", "code": "INVALID_QUESTION"}
        )
    return question


@app.get("/")
async def root():
    """Service banner."""
    return {
        "message": "PGPM Admissions Assistant API",
        "version": app.version,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "chat": "/api/chat",
            "stream": "/api/chat/stream",
        },
    }


@app.get("/health")
async def health():
    """Check the pipeline and the similarity-search service."""
    checks = {
        "server": "healthy",
        "pipeline": "healthy" if chat_service is not None else "not initialized",
        "vector_store": "not initialized",
    }
    if vector_store is not None:
        result = await vector_store.health_check()
        checks["vector_store"] = result["status"]

    healthy = all(status == "healthy" for status in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unhealthy", "checks": checks, "timestamp": _timestamp()},
    )


@app.get("/api/status")
async def system_status():
    """Uptime, corpus statistics and live session count."""
    service = _require_service()
    try:
        stats = await vector_store.get_statistics()
    except RetrievalError as e:
        logger.error(f"Failed to read vector store statistics: {e.message}")
        raise HTTPException(
            status_code=503,
            detail={"error": "Vector store unavailable", "code": e.code}
        )
    return {
        "status": "running",
        "uptime_seconds": int(time.time() - started_at),
        "vector_store": stats,
        "sessions": {"active": service.active_sessions},
        "timestamp": _timestamp(),
    }


@app.post("/api/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    request: ChatRequest,
    response: Response,
    x_session_id: Optional[str] = Header(None, alias=SESSION_HEADER),
) -> ChatResponse:
    """
    Answer a question and return the final result in one response.

    Raises:
        HTTPException: 400 for an empty question, 503 before startup,
            500 for unexpected failures
    """
    service = _require_service()
    question = _validate_question(request.question)

    try:
        result = await service.answer(question, session_id=x_session_id or request.session_id)
    except Exception as e:
        logger.error(f"Unexpected error processing query: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Failed to process query",
                "code": "PROCESSING_ERROR",
                "details": str(e) if is_development() else None,
            }
        )

    response.headers[SESSION_HEADER] = result.session_id
    return ChatResponse(
        answer=result.answer,
        confidence=result.confidence,
        sources=result.sources,
        session_id=result.session_id,
        retrieved_document_count=result.retrieved_document_count if request.include_context else None,
    )


@app.post("/api/chat/stream")
async def chat_stream(
    request: ChatRequest,
    x_session_id: Optional[str] = Header(None, alias=SESSION_HEADER),
):
    """
    Answer a question as a Server-Sent Events stream.

    Frames: connected, then status/token/ping, then complete (or error),
    then end.
    """
    service = _require_service()
    question = _validate_question(request.question)

    stream = AnswerStream(
        service,
        question,
        session_id=x_session_id or request.session_id,
        include_error_details=is_development(),
    )
    return StreamingResponse(
        stream.frames(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering in nginx
            SESSION_HEADER: stream.session_id,
        }
    )


@app.get("/api/session/history", response_model=HistoryResponse, response_model_by_alias=True)
async def session_history(
    response: Response,
    x_session_id: Optional[str] = Header(None, alias=SESSION_HEADER),
) -> HistoryResponse:
    """Turns and statistics for the caller's session."""
    session, turns, stats = _require_service().get_history(x_session_id)
    response.headers[SESSION_HEADER] = session.session_id
    return HistoryResponse(
        session_id=session.session_id,
        history=[
            TurnOut(
                timestamp=turn.timestamp.isoformat(),
                question=turn.question,
                answer=turn.answer,
                confidence=turn.confidence,
                sources=list(turn.sources),
            )
            for turn in turns
        ],
        stats=HistoryStats(
            total_turns=stats.total_turns,
            average_confidence=stats.average_confidence,
            unique_sources=stats.unique_sources,
            time_span=stats.time_span_minutes,
        ),
    )


@app.delete("/api/session/clear")
async def clear_session(
    response: Response,
    x_session_id: Optional[str] = Header(None, alias=SESSION_HEADER),
):
    """Forget the caller's conversation history."""
    session = _require_service().clear_history(x_session_id)
    response.headers[SESSION_HEADER] = session.session_id
    return {"message": "Session cleared successfully", "sessionId": session.session_id, "timestamp": _timestamp()}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting PGPM Admissions Assistant API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
