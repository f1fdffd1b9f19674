"""Domain exceptions raised by services and translated to HTTP errors by routers."""

from __future__ import annotations

from fastapi import HTTPException, status


class InkwellError(Exception):
    """Base class for service-level errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class ValidationFailed(InkwellError):
    """Input is well-formed JSON but violates a domain rule."""

    status_code = status.HTTP_400_BAD_REQUEST


class WorkflowError(InkwellError):
    """Illegal post status transition."""

    status_code = status.HTTP_409_CONFLICT


class SlugConflict(InkwellError):
    """Slug (or other unique handle) already taken."""

    status_code = status.HTTP_409_CONFLICT


class LimitExceeded(InkwellError):
    status_code = status.HTTP_409_CONFLICT


class PayloadTooLarge(InkwellError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE


class UnsupportedMediaType(InkwellError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
