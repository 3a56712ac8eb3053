"""Per-request correlation identifiers and the middleware that manages them.

The id lives in a ``ContextVar``. Every ASGI request runs in its own task and
sync endpoints run in worker threads that receive a copy of that task's
context, so the value is bound to the logical request rather than to a
reusable worker thread.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
import uuid

from starlette.datastructures import Headers
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp
from starlette.types import Message
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send

REQUEST_ID_HEADER = "X-Request-ID"
LOG_CONTEXT_KEY = "requestId"

_request_id: ContextVar[str | None] = ContextVar(LOG_CONTEXT_KEY, default=None)


def _adopt_or_generate(inbound_header_value: str | None) -> str:
    return inbound_header_value if inbound_header_value else str(uuid.uuid4())


def begin(inbound_header_value: str | None = None) -> str:
    """Adopt the inbound id or generate a new one, and make it current."""
    request_id = _adopt_or_generate(inbound_header_value)
    _request_id.set(request_id)
    return request_id


def current() -> str | None:
    """Return the correlation id of the calling request, if any."""
    return _request_id.get()


def end() -> None:
    """Drop the current correlation id."""
    _request_id.set(None)


@contextmanager
def correlation_scope(inbound_header_value: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of the block, then restore the previous one."""
    request_id = _adopt_or_generate(inbound_header_value)
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Expose the active correlation id on every log record as ``requestId``."""

    def __init__(self, placeholder: str = "-") -> None:
        super().__init__()
        self._placeholder = placeholder

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = current()
        setattr(record, LOG_CONTEXT_KEY, request_id if request_id is not None else self._placeholder)
        return True


class CorrelationMiddleware:
    """Wrap each HTTP request in a correlation scope and echo the id back."""

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER) -> None:
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        inbound = Headers(scope=scope).get(self.header_name)
        with correlation_scope(inbound) as request_id:

            async def send_with_request_id(message: Message) -> None:
                if message["type"] == "http.response.start":
                    headers = MutableHeaders(scope=message)
                    headers[self.header_name] = request_id
                await send(message)

            await self.app(scope, receive, send_with_request_id)
