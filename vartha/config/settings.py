"""Runtime configuration, read from the environment (and .env via python-dotenv)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

APP_VERSION = "1.2.0"
DEFAULT_USER_AGENT = "VarthaHeadlines/1.2 (+https://localhost)"
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; falling back to {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; falling back to {default}")
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.environ.get(name)
    if raw is None:
        return list(default)
    return [v.strip() for v in raw.split(",") if v.strip()]


@dataclass(frozen=True)
class Settings:
    sources_path: Path = Path("sources.json")
    cache_ttl_seconds: float = 300.0
    recency_window_hours: float = 24.0
    fetch_timeout_seconds: float = 10.0
    source_timeout_seconds: float = 12.0
    request_timeout_seconds: float = 25.0
    enrich_max_fetch: int = 50
    enrich_concurrency: int = 6
    fetch_max_bytes: int = 2_000_000
    user_agent: str = DEFAULT_USER_AGENT
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    rate_limit_default: str = "1000 per day;200 per hour"
    headlines_rate_limit: str = "30 per minute"
    version: str = APP_VERSION

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)
        fetch_timeout = _env_float("FETCH_TIMEOUT_SECONDS", 10.0)
        return cls(
            sources_path=Path(os.environ.get("SOURCES_PATH", "sources.json")),
            cache_ttl_seconds=_env_float("CACHE_TTL_SECONDS", 300.0),
            recency_window_hours=_env_float("RECENCY_WINDOW_HOURS", 24.0),
            fetch_timeout_seconds=fetch_timeout,
            # the per-source bound must stay above the per-request one
            source_timeout_seconds=_env_float("SOURCE_TIMEOUT_SECONDS", fetch_timeout + 2.0),
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", 25.0),
            enrich_max_fetch=_env_int("ENRICH_MAX_FETCH", 50),
            enrich_concurrency=max(1, _env_int("ENRICH_CONCURRENCY", 6)),
            fetch_max_bytes=_env_int("FETCH_MAX_BYTES", 2_000_000),
            user_agent=os.environ.get("HEADLINES_USER_AGENT", DEFAULT_USER_AGENT),
            port=_env_int("PORT", 3000),
            cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            rate_limit_default=os.environ.get("RATE_LIMIT_DEFAULT", "1000 per day;200 per hour"),
            headlines_rate_limit=os.environ.get("HEADLINES_RATE_LIMIT", "30 per minute"),
            version=os.environ.get("APP_VERSION", APP_VERSION),
        )
