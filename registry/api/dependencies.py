"""Shared request dependencies for API routes."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from registry.core.exceptions import UnsupportedMediaTypeError


def require_content_type(*supported: str) -> Callable[[Request], None]:
    """Reject requests whose body media type is not one of ``supported``."""
    accepted = {media_type.lower() for media_type in supported}

    def dependency(request: Request) -> None:
        content_type = request.headers.get("content-type")
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        if media_type not in accepted:
            raise UnsupportedMediaTypeError(content_type, supported)

    return dependency
