from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "YOUR_GEMINI_API_KEY_HERE"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_FALLBACK_MODELS = (
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-pro",
    "gemini-1.5-pro-002",
    "gemini-1.5-flash-002",
)


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_number(name: str, default: float, cast: type = float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = cast(value.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using default %s", name, value, default)
        return default
    if not number > 0:
        logger.warning("Ignoring non-positive %s=%r; using default %s", name, value, default)
        return default
    return number


@dataclass
class Settings:
    gemini_api_key: str | None = None
    gemini_base_url: str = DEFAULT_BASE_URL
    gemini_timeout_seconds: float = 60.0
    fallback_models: list[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_MODELS))
    preferred_model_prefix: str = "gemma-"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_allow_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            gemini_base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            gemini_timeout_seconds=_env_number("GEMINI_TIMEOUT_SECONDS", 60.0),
            fallback_models=_split_csv(os.getenv("GEMINI_FALLBACK_MODELS")) or list(DEFAULT_FALLBACK_MODELS),
            preferred_model_prefix=os.getenv("GEMINI_PREFERRED_PREFIX", "gemma-"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_number("PORT", 3000, cast=int),
            cors_allow_origins=_split_csv(os.getenv("CORS_ALLOW_ORIGINS")) or ["*"],
        )

    @property
    def gemini_configured(self) -> bool:
        key = (self.gemini_api_key or "").strip()
        return bool(key) and key != PLACEHOLDER_API_KEY
