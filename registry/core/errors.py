"""Failure classification, error envelope construction and handler registration.

Every failure that reaches the HTTP layer is mapped to exactly one
``FailureKind``. The kind decides the status code and the log level; the
payload is always an ``ErrorResponse``. Nothing propagates past this module
unless the response has already started streaming.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response
from starlette.types import ASGIApp
from starlette.types import Message
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send

from registry.core import correlation
from registry.core.exceptions import ApplicationError
from registry.core.exceptions import BusinessValidationError
from registry.core.exceptions import DuplicateResourceError
from registry.core.exceptions import ResourceNotFoundError
from registry.core.exceptions import ServiceError
from registry.core.exceptions import TransformError
from registry.core.exceptions import UnsupportedMediaTypeError
from registry.core.field_paths import RawFieldViolation
from registry.core.field_paths import body_shape_for
from registry.core.field_paths import raw_path_from_location
from registry.core.field_paths import resolve_field_errors
from registry.core.reporting import FaultReporter
from registry.core.reporting import NullFaultReporter
from registry.core.reporting import dispatch_fault
from registry.schemas.error import ErrorResponse
from registry.schemas.error import FieldError

logger = logging.getLogger(__name__)

BODY_PARSE_ERROR_DETAIL = "There was an error parsing the body"
BEAN_VALIDATION_MESSAGE = "Validation failed."
BEAN_VALIDATION_DETAILS = "One or more fields have validation errors"
JSON_INVALID_ERROR_TYPE = "json_invalid"

_NO_BODY_STATUSES = frozenset({status.HTTP_204_NO_CONTENT, status.HTTP_304_NOT_MODIFIED})


class FailureKind(str, Enum):
    UNCLASSIFIED = "unclassified"
    SERVICE = "service"
    TRANSFORM = "transform"
    NOT_FOUND = "not_found"
    BUSINESS_VALIDATION = "business_validation"
    DUPLICATE_RESOURCE = "duplicate_resource"
    MALFORMED_ARGUMENT = "malformed_argument"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    UNREADABLE_BODY = "unreadable_body"
    CONSTRAINT_VIOLATION = "constraint_violation"
    BEAN_VALIDATION = "bean_validation"
    HTTP_ERROR = "http_error"


@dataclass(frozen=True)
class FailurePolicy:
    """Status and local log level for one failure kind; ``None`` means not logged here."""

    status_code: int
    log_level: int | None
    default_message: str


FAILURE_POLICIES: dict[FailureKind, FailurePolicy] = {
    FailureKind.UNCLASSIFIED: FailurePolicy(500, logging.ERROR, "Internal server error"),
    # Service errors are logged where they are raised.
    FailureKind.SERVICE: FailurePolicy(500, None, ServiceError.default_message),
    FailureKind.TRANSFORM: FailurePolicy(500, logging.WARNING, TransformError.default_message),
    FailureKind.NOT_FOUND: FailurePolicy(404, None, ResourceNotFoundError.default_message),
    FailureKind.BUSINESS_VALIDATION: FailurePolicy(422, None, BusinessValidationError.default_message),
    FailureKind.DUPLICATE_RESOURCE: FailurePolicy(409, None, DuplicateResourceError.default_message),
    FailureKind.MALFORMED_ARGUMENT: FailurePolicy(400, logging.WARNING, "Invalid argument"),
    FailureKind.METHOD_NOT_ALLOWED: FailurePolicy(405, logging.WARNING, "Method Not Allowed"),
    FailureKind.UNSUPPORTED_MEDIA_TYPE: FailurePolicy(415, logging.WARNING, UnsupportedMediaTypeError.default_message),
    FailureKind.UNREADABLE_BODY: FailurePolicy(400, logging.WARNING, "Malformed request body"),
    FailureKind.CONSTRAINT_VIOLATION: FailurePolicy(400, logging.WARNING, "Constraint violation"),
    FailureKind.BEAN_VALIDATION: FailurePolicy(400, logging.WARNING, BEAN_VALIDATION_MESSAGE),
    FailureKind.HTTP_ERROR: FailurePolicy(500, None, "Request failed"),
}

_LOG_LABELS = {
    FailureKind.TRANSFORM: "Transformer exception",
    FailureKind.METHOD_NOT_ALLOWED: "Unsupported HTTP method",
    FailureKind.UNSUPPORTED_MEDIA_TYPE: "Unsupported media type",
}


def classify(exc: BaseException) -> FailureKind:
    """Map a raised failure onto the closed failure taxonomy."""
    if isinstance(exc, ServiceError):
        return FailureKind.SERVICE
    if isinstance(exc, TransformError):
        return FailureKind.TRANSFORM
    if isinstance(exc, ResourceNotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(exc, BusinessValidationError):
        return FailureKind.BUSINESS_VALIDATION
    if isinstance(exc, DuplicateResourceError):
        return FailureKind.DUPLICATE_RESOURCE
    if isinstance(exc, UnsupportedMediaTypeError):
        return FailureKind.UNSUPPORTED_MEDIA_TYPE
    if isinstance(exc, RequestValidationError):
        if any(_issue_type(issue) == JSON_INVALID_ERROR_TYPE for issue in exc.errors()):
            return FailureKind.UNREADABLE_BODY
        return FailureKind.BEAN_VALIDATION
    if isinstance(exc, StarletteHTTPException):
        return _classify_http_exception(exc)
    # pydantic's ValidationError is itself a ValueError.
    if isinstance(exc, PydanticValidationError):
        return FailureKind.CONSTRAINT_VIOLATION
    if isinstance(exc, ValueError):
        return FailureKind.MALFORMED_ARGUMENT
    return FailureKind.UNCLASSIFIED


def _classify_http_exception(exc: StarletteHTTPException) -> FailureKind:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return FailureKind.NOT_FOUND
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return FailureKind.METHOD_NOT_ALLOWED
    if exc.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE:
        return FailureKind.UNSUPPORTED_MEDIA_TYPE
    if exc.status_code == status.HTTP_400_BAD_REQUEST and exc.detail == BODY_PARSE_ERROR_DETAIL:
        return FailureKind.UNREADABLE_BODY
    return FailureKind.HTTP_ERROR


def status_for(kind: FailureKind, exc: BaseException) -> int:
    """Response status for a classified failure."""
    if kind is FailureKind.HTTP_ERROR and isinstance(exc, StarletteHTTPException):
        return exc.status_code
    return FAILURE_POLICIES[kind].status_code


def describe_request(request: Request, *, include_client_info: bool = False) -> str:
    """Human-readable request context used in payloads and logs."""
    description = f"uri={request.url.path}"
    if include_client_info and request.client is not None:
        description += f";client={request.client.host}"
    return description


def _issue_type(issue: Any) -> str | None:
    if isinstance(issue, dict):
        return issue.get("type")
    return None


def _failure_message(kind: FailureKind, exc: BaseException) -> str:
    if isinstance(exc, ApplicationError):
        text: str | None = exc.message
    elif isinstance(exc, StarletteHTTPException):
        text = exc.detail if isinstance(exc.detail, str) else None
    elif isinstance(exc, (RequestValidationError, PydanticValidationError)):
        text = None
    else:
        text = str(exc)
    return text or FAILURE_POLICIES[kind].default_message


def _most_specific_cause(exc: BaseException) -> str:
    root: BaseException = exc
    seen: set[int] = {id(root)}
    while root.__cause__ is not None and id(root.__cause__) not in seen:
        root = root.__cause__
        seen.add(id(root))
    if root is not exc:
        return str(root) or type(root).__name__

    if isinstance(exc, RequestValidationError):
        for issue in exc.errors():
            if _issue_type(issue) == JSON_INVALID_ERROR_TYPE:
                context = issue.get("ctx") or {}
                if context.get("error"):
                    return str(context["error"])
    return "Unknown"


async def _read_body_for_logging(request: Request, exc: BaseException) -> str | None:
    raw: Any = getattr(exc, "body", None)
    if raw is None:
        try:
            raw = await request.body()
        except Exception:
            logger.warning("Failed to read client request body for debugging", exc_info=True)
            return None
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    return str(raw)


def _constraint_summary(exc: PydanticValidationError) -> str:
    messages = [str(issue.get("msg", "Invalid value")) for issue in exc.errors()]
    return f"{exc.error_count()} constraint violation(s): " + "; ".join(messages)


def _bean_validation_errors(request: Request, exc: RequestValidationError) -> list[FieldError]:
    body_shape = body_shape_for(request.scope.get("route"))
    errors: list[FieldError] = []
    for issue in exc.errors():
        location = issue.get("loc", ())
        located_in_body = bool(location) and location[0] == "body"
        violation = RawFieldViolation(
            path=raw_path_from_location(location),
            message=str(issue.get("msg", "Invalid value")),
        )
        errors.extend(resolve_field_errors(body_shape if located_in_body else None, [violation]))
    return errors


async def build_error_response(request: Request, exc: BaseException, kind: FailureKind) -> ErrorResponse:
    """Build the client payload for a classified failure and log it per policy."""
    policy = FAILURE_POLICIES[kind]
    details = describe_request(request)

    if kind is FailureKind.BEAN_VALIDATION and isinstance(exc, RequestValidationError):
        errors = _bean_validation_errors(request, exc)
        full_description = describe_request(request, include_client_info=True)
        for error in errors:
            logger.warning("Validation failed: %s: %s | Request: %s", error.path, error.message, full_description)
        return ErrorResponse(message=BEAN_VALIDATION_MESSAGE, details=BEAN_VALIDATION_DETAILS, errors=errors)

    if kind is FailureKind.BUSINESS_VALIDATION and isinstance(exc, BusinessValidationError):
        return ErrorResponse(message=_failure_message(kind, exc), details=details, errors=exc.errors)

    if kind is FailureKind.UNREADABLE_BODY:
        cause = _most_specific_cause(exc)
        body = await _read_body_for_logging(request, exc)
        logger.warning(
            "HTTP message not readable: %s | Request: %s | Failed message: %s | Client Request Body: %s",
            _failure_message(kind, exc),
            describe_request(request, include_client_info=True),
            cause,
            body if body is not None else "Unavailable",
        )
        return ErrorResponse(message=f"{policy.default_message}: {cause}", details=details)

    if kind is FailureKind.CONSTRAINT_VIOLATION and isinstance(exc, PydanticValidationError):
        logger.warning(
            "Constraint violation: %s | Request: %s",
            "; ".join(f"{raw_path_from_location(issue.get('loc', ()))}: {issue.get('msg')}" for issue in exc.errors()),
            describe_request(request, include_client_info=True),
        )
        return ErrorResponse(message=_constraint_summary(exc), details=details)

    message = _failure_message(kind, exc)
    if kind is FailureKind.UNCLASSIFIED:
        logger.error("Unhandled exception: %s", message, exc_info=exc)
    elif kind is FailureKind.MALFORMED_ARGUMENT:
        logger.warning("Illegal argument: %s | Request: %s", message, describe_request(request, include_client_info=True))
    elif policy.log_level is not None:
        logger.log(policy.log_level, "%s: %s", _LOG_LABELS.get(kind, kind.value), message)
    return ErrorResponse(message=message, details=details)


def _fault_reporter(request: Request) -> FaultReporter:
    reporter = getattr(request.app.state, "fault_reporter", None)
    return reporter if reporter is not None else NullFaultReporter()


async def handle_exception(request: Request, exc: Exception) -> Response:
    """Translate any failure into the shared error envelope."""
    kind = classify(exc)
    status_code = status_for(kind, exc)
    try:
        payload = await build_error_response(request, exc, kind)
    except Exception:
        logger.exception("Failed to build error response for %s", type(exc).__name__)
        payload = ErrorResponse(
            message=FAILURE_POLICIES[kind].default_message,
            details=describe_request(request),
        )
    report = BackgroundTask(dispatch_fault, _fault_reporter(request), exc, correlation.current())

    headers = getattr(exc, "headers", None) if isinstance(exc, StarletteHTTPException) else None
    if status_code in _NO_BODY_STATUSES:
        return Response(status_code=status_code, headers=headers, background=report)
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(mode="json"),
        headers=headers,
        background=report,
    )


class UnhandledErrorMiddleware:
    """Route failures no exception handler claimed through ``handle_exception``.

    Starlette sends unmatched exceptions to its outermost error middleware,
    which runs outside the correlation scope; catching them here keeps the
    request id on both the response and the log records.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def sender(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, sender)
        except Exception as exc:
            if response_started:
                raise
            response = await handle_exception(Request(scope, receive), exc)
            await response(scope, receive, send)


HANDLED_EXCEPTION_TYPES: tuple[type[Exception], ...] = (
    ApplicationError,
    RequestValidationError,
    StarletteHTTPException,
    PydanticValidationError,
    ValueError,
)


def register_error_handlers(app: FastAPI, reporter: FaultReporter | None = None) -> None:
    """Attach the error handlers and the catch-all middleware to a FastAPI app."""
    app.state.fault_reporter = reporter if reporter is not None else NullFaultReporter()
    for exception_type in HANDLED_EXCEPTION_TYPES:
        app.add_exception_handler(exception_type, handle_exception)
    app.add_middleware(UnhandledErrorMiddleware)
