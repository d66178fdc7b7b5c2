from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # HTTP
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    FEED_USER_AGENT: str = "Mozilla/5.0 (compatible; ArchiveCollector/1.0; RSS reader)"
    FEED_TIMEOUT: float = 10.0
    PAGE_TIMEOUT: float = 15.0
    STEALTH_FALLBACK: bool = True

    # Pagination behaviour
    PAGINATION_DELAY: float = 1.0
    PAGINATION_ERROR_DELAY: float = 2.0
    MAX_CONSECUTIVE_EMPTY: int = 3

    # Orchestration
    MIN_CONFIDENCE: float = 0.1
    COLLECTION_TIMEOUT: float = 60.0
    UNIVERSAL_LISTING_THRESHOLD: int = 30

    # Ghost Content API key used when a site exposes its public key
    GHOST_CONTENT_API_KEY: str = "public"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
