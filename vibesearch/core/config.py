"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from vibesearch.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_NAMES = {
    "openai_api_key": "OPENAI_API_KEY",
    "database_url": "DATABASE_URL",
    "google_places_api_key": "GOOGLE_PLACES_API_KEY",
    "google_distance_matrix_api_key": "GOOGLE_DISTANCE_MATRIX_API_KEY",
    "google_geocoding_api_key": "GOOGLE_GEOCODING_API_KEY",
}


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    database_url: str
    google_places_api_key: str = ""
    google_distance_matrix_api_key: str = ""
    google_geocoding_api_key: str = ""
    worker_port: int = 9000
    embedding_model: str = "text-embedding-3-small"
    chat_model: str = "gpt-4o-mini"
    search_timeout_seconds: float = 30.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    shared_google_key = os.getenv("GOOGLE_API_KEY", "")
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY") or shared_google_key
    google_distance_matrix_api_key = os.getenv("GOOGLE_DISTANCE_MATRIX_API_KEY") or shared_google_key
    google_geocoding_api_key = os.getenv("GOOGLE_GEOCODING_API_KEY") or shared_google_key
    worker_port = int(os.getenv("WORKER_PORT", "9000"))
    embedding_model = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    chat_model = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    search_timeout_seconds = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30"))

    if not database_url:
        logger.warning("DATABASE_URL is not set; vector search will fail.")
    if not openai_api_key:
        logger.warning("OPENAI_API_KEY is not configured; embedding and AI requests will fail.")
    if not google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; nearby place search is unavailable.")
    if not google_distance_matrix_api_key:
        logger.warning("GOOGLE_DISTANCE_MATRIX_API_KEY is not configured; distances are unavailable.")

    return Settings(
        openai_api_key=openai_api_key,
        database_url=database_url,
        google_places_api_key=google_places_api_key,
        google_distance_matrix_api_key=google_distance_matrix_api_key,
        google_geocoding_api_key=google_geocoding_api_key,
        worker_port=worker_port,
        embedding_model=embedding_model,
        chat_model=chat_model,
        search_timeout_seconds=search_timeout_seconds,
    )


def require_settings(settings: Settings, *fields: str) -> None:
    """Raise ConfigurationError naming every listed setting that is empty."""
    missing = [ENV_NAMES.get(name, name.upper()) for name in fields if not getattr(settings, name, "")]
    if missing:
        raise ConfigurationError(missing)
