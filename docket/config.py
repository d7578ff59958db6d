"""
Configuration for the hearing service
=====================================

Environment variables:
- SCHEDULER_CONFLICT_SCOPES: comma-separated conflict scopes
  (courtroom, counsel, client, global; default: courtroom,counsel)
- DEFAULT_TIMEZONE: timezone for hearings created without one (default: Asia/Kolkata)
- LOG_LEVEL: root logging level (default: INFO)
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from docket.domain.models import ConflictScope

logger = logging.getLogger(__name__)

DEFAULT_CONFLICT_SCOPES = "courtroom,counsel"


def parse_conflict_scopes(raw: str | None) -> frozenset[ConflictScope]:
    """Parse a comma-separated scope list, ignoring unknown tokens."""
    if not raw or not raw.strip():
        raw = DEFAULT_CONFLICT_SCOPES

    scopes = set()
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        try:
            scopes.add(ConflictScope(token))
        except ValueError:
            logger.debug("Ignoring unknown conflict scope %r", token)
    return frozenset(scopes)


class Settings(BaseSettings):
    """Application settings from environment variables"""

    scheduler_conflict_scopes: str = DEFAULT_CONFLICT_SCOPES
    default_timezone: str = "Asia/Kolkata"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def active_scopes(self) -> frozenset[ConflictScope]:
        return parse_conflict_scopes(self.scheduler_conflict_scopes)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
