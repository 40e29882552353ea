"""Configuration helpers for the generation client."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DEFAULT_HOST = "https://api.stability.ai/v2beta"
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 500


class ConfigurationError(ValueError):
    """Raised when the caller supplies an unusable configuration."""


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer number of seconds, got {raw!r}") from exc


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    The API key is deliberately absent: it is looked up on every request via
    :func:`current_api_key` so a rotated key is picked up without a restart.
    """

    stability_host: str = os.getenv("STABILITY_HOST", DEFAULT_HOST)
    worker_timeout: int = _env_int("WORKER_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    poll_interval_seconds: float = _env_float("POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS)
    http_timeout: float = _env_float("HTTP_TIMEOUT_SECONDS", 60.0)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


def current_api_key() -> Optional[str]:
    """Read the bearer credential from the environment at call time."""

    key = os.getenv("STABILITY_KEY")
    return key.strip() if key else None


@dataclass(frozen=True)
class PollConfig:
    """Timing knobs for the asynchronous job poller."""

    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError("poll_interval_seconds must be positive")
        if self.timeout_seconds <= self.poll_interval_seconds:
            raise ConfigurationError(
                f"timeout_seconds ({self.timeout_seconds}) must exceed "
                f"poll_interval_seconds ({self.poll_interval_seconds})"
            )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PollConfig":
        settings = settings or get_settings()
        return cls(
            poll_interval_seconds=settings.poll_interval_seconds,
            timeout_seconds=settings.worker_timeout,
        )


settings = get_settings()
