"""Application configuration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os

DEFAULT_DATABASE_URL = "sqlite:///./registry.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_FAULT_REPORT_TIMEOUT_SECONDS = 2.0


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    return float(raw)


def _get_optional_env(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def redact_secret(secret: str | None) -> str:
    """Return a non-recoverable placeholder for sensitive values."""
    if not secret:
        return "<empty>"
    return "<redacted>"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the registry service."""

    database_url: str
    log_level: str
    fault_report_url: str | None
    fault_report_token: str | None
    fault_report_timeout_seconds: float

    @property
    def fault_reporting_enabled(self) -> bool:
        return self.fault_report_url is not None

    def safe_for_logging(self) -> dict[str, str | float | None]:
        """Return settings safe for logs."""
        return {
            "database_url": self.database_url,
            "log_level": self.log_level,
            "fault_report_url": self.fault_report_url,
            "fault_report_token": redact_secret(self.fault_report_token),
            "fault_report_timeout_seconds": self.fault_report_timeout_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load service settings from the environment."""
    return Settings(
        database_url=os.getenv("REGISTRY_DATABASE_URL", DEFAULT_DATABASE_URL),
        log_level=os.getenv("REGISTRY_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        fault_report_url=_get_optional_env("REGISTRY_FAULT_REPORT_URL"),
        fault_report_token=_get_optional_env("REGISTRY_FAULT_REPORT_TOKEN"),
        fault_report_timeout_seconds=_get_float_env(
            "REGISTRY_FAULT_REPORT_TIMEOUT_SECONDS",
            DEFAULT_FAULT_REPORT_TIMEOUT_SECONDS,
        ),
    )
