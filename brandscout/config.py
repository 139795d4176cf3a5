"""Runtime configuration.

Settings are read from environment variables (optionally seeded from a
``.env`` file).  The database URL is resolved separately by
:func:`brandscout.database.get_database_url`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Tunable knobs of the discovery service."""

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    apify_api_token: Optional[str] = None
    youtube_api_key: Optional[str] = None

    cache_ttl_days: int = 7
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 3600
    collaborator_timeout_seconds: int = 120

    min_followers: int = 10_000
    min_corroborating_creators: int = 2

    jwt_secret_key: str = "changeme"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment and ``.env``."""
        load_dotenv()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            apify_api_token=os.getenv("APIFY_API_TOKEN") or None,
            youtube_api_key=os.getenv("YOUTUBE_API_KEY") or None,
            cache_ttl_days=_int_env("CACHE_TTL_DAYS", 7),
            rate_limit_max_requests=_int_env("RATE_LIMIT_MAX_REQUESTS", 10),
            rate_limit_window_seconds=_int_env("RATE_LIMIT_WINDOW_SECONDS", 3600),
            collaborator_timeout_seconds=_int_env("COLLABORATOR_TIMEOUT_SECONDS", 120),
            min_followers=_int_env("MIN_FOLLOWERS", 10_000),
            min_corroborating_creators=_int_env("MIN_CORROBORATING_CREATORS", 2),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", "changeme"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 30),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler; safe to call more than once."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
