"""Configuration helpers for image guardrail processing."""

from __future__ import annotations

import os
from typing import Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed configuration container."""

    supported_formats: Tuple[str, ...] = (
        "jpeg",
        "png",
        "webp",
        "gif",
    )
    nsfw_confidence_threshold: float = 0.7
    max_image_size_mb: int = 50
    max_image_dimension: int = 4096
    enforce_max_dimension: bool = False

    rate_limit_max_requests: int = 30
    rate_limit_window_seconds: float = 60.0
    # Expired per-user windows are swept once the map grows past this size.
    rate_limit_sweep_threshold: int = 10_000
    anonymous_user_id: str = "anonymous"

    audit_log_capacity: int = 10_000
    audit_log_default_limit: int = 100
    audit_log_max_limit: int = 1000

    log_level: str = os.getenv("IMGGUARD_LOG_LEVEL", "INFO")

    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra="allow")

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024


settings = Settings()
