"""Fault-reporting sinks fed by the error handlers."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
import logging
import traceback
from typing import Any
from typing import Protocol

import requests

from registry.core.config import Settings

logger = logging.getLogger(__name__)


class FaultReporter(Protocol):
    """Receives every failure the error handlers classify."""

    def capture(self, exc: BaseException, *, request_id: str | None) -> None:
        ...


class NullFaultReporter:
    """Reporter used when no external telemetry is configured."""

    def capture(self, exc: BaseException, *, request_id: str | None) -> None:
        return None


class InMemoryFaultReporter:
    """Keep captured faults in a list; used for local runs and tests."""

    def __init__(self) -> None:
        self.captured: list[tuple[BaseException, str | None]] = []

    def capture(self, exc: BaseException, *, request_id: str | None) -> None:
        self.captured.append((exc, request_id))


class HttpFaultReporter:
    """POST fault events as JSON to a collector endpoint."""

    def __init__(
        self,
        *,
        url: str,
        token: str | None = None,
        timeout_seconds: float = 2.0,
        session: requests.Session | None = None,
    ) -> None:
        if not url:
            raise ValueError("url is required")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._url = url
        self._token = token
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def capture(self, exc: BaseException, *, request_id: str | None) -> None:
        response = self._session.post(
            self._url,
            json=self._event(exc, request_id),
            headers=self._headers(),
            timeout=self._timeout_seconds,
        )
        response.raise_for_status()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "customer-registry/0.1",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    @staticmethod
    def _event(exc: BaseException, request_id: str | None) -> dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "exception_type": f"{type(exc).__module__}.{type(exc).__qualname__}",
            "message": str(exc),
            "error_code": getattr(exc, "error_code", None),
            "stacktrace": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }


def reporter_from_settings(settings: Settings) -> FaultReporter:
    """Build the reporter described by the service settings."""
    if settings.fault_report_url is None:
        return NullFaultReporter()
    return HttpFaultReporter(
        url=settings.fault_report_url,
        token=settings.fault_report_token,
        timeout_seconds=settings.fault_report_timeout_seconds,
    )


def dispatch_fault(reporter: FaultReporter, exc: BaseException, request_id: str | None) -> None:
    """Deliver a fault to the reporter; delivery problems never reach the caller."""
    try:
        reporter.capture(exc, request_id=request_id)
    except Exception:
        logger.warning(
            "Fault reporter %s failed to capture %s",
            type(reporter).__name__,
            type(exc).__name__,
            exc_info=True,
        )
