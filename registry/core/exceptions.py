"""Application exception hierarchy translated by the error handlers."""

from __future__ import annotations

from collections.abc import Sequence

from registry.schemas.error import FieldError


class ApplicationError(Exception):
    """Base class for failures raised deliberately by application code."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ServiceError(ApplicationError):
    """Expected service-level failure; the raiser is responsible for logging it."""

    default_message = "Service failure"

    def __init__(self, message: str | None = None, *, error_code: str = "service_error") -> None:
        super().__init__(message)
        self.error_code = error_code


class TransformError(ApplicationError):
    """Raised when a data-shaping step cannot restructure its input."""

    default_message = "Data transformation failed"


class ResourceNotFoundError(ApplicationError):
    """Raised when a requested resource does not exist."""

    default_message = "Resource not found"


class BusinessValidationError(ApplicationError):
    """Well-formed input rejected by a business rule."""

    default_message = "Validation failed."

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: Sequence[FieldError] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else None


class DuplicateResourceError(ApplicationError):
    """Raised when creating a resource that already exists."""

    default_message = "Resource already exists"


class UnsupportedMediaTypeError(ApplicationError):
    """Raised when a request body arrives in a media type the endpoint cannot read."""

    default_message = "Unsupported media type"

    def __init__(self, content_type: str | None, supported: Sequence[str]) -> None:
        self.content_type = content_type
        self.supported = tuple(supported)
        super().__init__(
            f"Content-Type '{content_type or ''}' is not supported; "
            f"expected one of: {', '.join(self.supported)}"
        )
