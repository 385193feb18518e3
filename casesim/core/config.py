"""
Configuration for the case-similarity service.
Values come from the environment (a local .env file is honoured).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/casesim.db")

# Debug flag
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "local")  # local|ollama|hash
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))
EMBED_MAX_CHARS = int(os.getenv("EMBED_MAX_CHARS", "8000"))

# Ollama configuration for summarization and synthesis
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
CASE_SUMMARY_MODEL = os.getenv("CASE_SUMMARY_MODEL", OLLAMA_MODEL)
CASE_SYNTHESIS_MODEL = os.getenv("CASE_SYNTHESIS_MODEL", OLLAMA_MODEL)
OLLAMA_TIMEOUT_SEC = float(os.getenv("OLLAMA_TIMEOUT_SEC", "120"))

# Retrieval defaults
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "5"))
SEARCH_MIN_SIMILARITY = float(os.getenv("SEARCH_MIN_SIMILARITY", "0.3"))
SIMILAR_CASES_TOP_K = int(os.getenv("SIMILAR_CASES_TOP_K", "5"))
SIMILAR_CASES_MIN_SIMILARITY = float(os.getenv("SIMILAR_CASES_MIN_SIMILARITY", "0.5"))

# Batch indexing and fan-out limits
BATCH_LIMIT = int(os.getenv("BATCH_LIMIT", "100"))
SUMMARY_CONCURRENCY = int(os.getenv("SUMMARY_CONCURRENCY", "5"))

# Version string
VERSION = "1.0.0"

VALID_EMBED_PROVIDERS = ["local", "ollama", "hash"]


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_embedding_provider():
    """Build the configured embedding provider."""
    if EMBED_PROVIDER == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=EMBED_DIM, max_chars=EMBED_MAX_CHARS)
    elif EMBED_PROVIDER == "ollama":
        from ..vector.embeddings import OllamaEmbedding
        return OllamaEmbedding(
            model_name=OLLAMA_EMBED_MODEL,
            host=OLLAMA_HOST,
            timeout=OLLAMA_TIMEOUT_SEC,
            max_chars=EMBED_MAX_CHARS
        )
    elif EMBED_PROVIDER == "local":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(model_name=EMBED_MODEL_NAME, max_chars=EMBED_MAX_CHARS)
    else:
        raise ValueError(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")


def get_embedding_config():
    """Describe the current embedding configuration without loading any model."""
    if EMBED_PROVIDER == "hash":
        return {"provider": "hash", "model": f"hash-{EMBED_DIM}", "dimensions": EMBED_DIM}
    elif EMBED_PROVIDER == "ollama":
        return {"provider": "ollama", "model": OLLAMA_EMBED_MODEL, "dimensions": None}
    return {"provider": "local", "model": EMBED_MODEL_NAME, "dimensions": EMBED_DIM}


def get_note_store():
    """Build a note store bound to the configured database."""
    from .dao import NoteStore
    return NoteStore(DB_PATH)


def get_case_summarizer():
    """Build the per-case summarizer."""
    from ..agents.case_agents import OllamaCaseSummarizer
    return OllamaCaseSummarizer(model_name=CASE_SUMMARY_MODEL, host=OLLAMA_HOST, timeout=OLLAMA_TIMEOUT_SEC)


def get_case_synthesizer():
    """Build the cross-case synthesizer."""
    from ..agents.case_agents import OllamaCaseSynthesizer
    return OllamaCaseSynthesizer(model_name=CASE_SYNTHESIS_MODEL, host=OLLAMA_HOST, timeout=OLLAMA_TIMEOUT_SEC)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if EMBED_MAX_CHARS < 1:
        issues.append("EMBED_MAX_CHARS must be >= 1")

    if BATCH_LIMIT < 0:
        issues.append("BATCH_LIMIT must be >= 0")

    if SUMMARY_CONCURRENCY < 1:
        issues.append("SUMMARY_CONCURRENCY must be >= 1")

    for name, value in (("SEARCH_TOP_K", SEARCH_TOP_K), ("SIMILAR_CASES_TOP_K", SIMILAR_CASES_TOP_K)):
        if value < 1:
            issues.append(f"{name} must be >= 1")

    for name, value in (("SEARCH_MIN_SIMILARITY", SEARCH_MIN_SIMILARITY),
                        ("SIMILAR_CASES_MIN_SIMILARITY", SIMILAR_CASES_MIN_SIMILARITY)):
        if not -1.0 <= value <= 1.0:
            issues.append(f"{name} must be between -1 and 1")

    return issues
