"""Configuration management for the PGPM Admissions Assistant."""
import os
from typing import Any, Dict, List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Model Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
JUDGE_MODEL = os.getenv("JUDGE_MODEL", "llama-3.1-8b-instant")
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "llama-3.3-70b-versatile")

# Retrieval Configuration
MAX_RETRIEVAL_DOCS = int(os.getenv("MAX_RETRIEVAL_DOCS", "8"))
KEYWORD_SEARCH_DOCS = 10
VECTOR_TABLE = os.getenv("VECTOR_TABLE", "spjimr_docs")
MATCH_FUNCTION = os.getenv("MATCH_FUNCTION", "match_documents")
DOMAIN_FILTER: Dict[str, Any] = {"program": "PGPM"}

# Session Configuration
MAX_HISTORY_TURNS = 10
SESSION_TIMEOUT_SECONDS = int(os.getenv("SESSION_TIMEOUT_SECONDS", "1800"))

# Streaming Configuration
HEARTBEAT_INTERVAL_SECONDS = float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "15"))

# Trace log (JSON Lines, one entry per answered question)
TRACE_LOG_PATH = os.getenv("TRACE_LOG_PATH", "logs/pipeline_traces.jsonl")

REQUIRED_SETTINGS = ("GROQ_API_KEY", "HUGGINGFACE_API_KEY", "SUPABASE_URL", "SUPABASE_KEY")


def missing_settings() -> List[str]:
    """Names of required settings that are not configured."""
    return [name for name in REQUIRED_SETTINGS if not globals().get(name)]


def validate_config() -> None:
    """
    Fail fast when an external service is not configured.

    Raises:
        ValueError: listing every missing required environment variable
    """
    missing = missing_settings()
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


def is_development() -> bool:
    """Whether internal error details may be returned to callers."""
    return ENVIRONMENT == "development"
