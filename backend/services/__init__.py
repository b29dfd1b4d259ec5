"""Services for the PGPM Admissions Assistant."""
from .errors import RAGError, ValidationError, RetrievalError, GenerationError
from .embedding_model import EmbeddingModel
from .vector_store import VectorStore
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .conversation_manager import ConversationManager, ConversationMemory, build_composite_query
from .retrieval_engine import RetrievalEngine
from .query_validator import QueryValidator
from .context_gate import ContextGate
from .output_evaluator import OutputEvaluator
from .generator import AnswerGenerator
from .pipeline import RAGPipeline
from .trace_logger import TraceLogger
from .chat_service import ChatService
from .streaming import AnswerStream

__all__ = ['RAGError', 'ValidationError', 'RetrievalError', 'GenerationError', 'EmbeddingModel', 'VectorStore', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'ConversationManager', 'ConversationMemory', 'build_composite_query', 'RetrievalEngine', 'QueryValidator', 'ContextGate', 'OutputEvaluator', 'AnswerGenerator', 'RAGPipeline', 'TraceLogger', 'ChatService', 'AnswerStream']
