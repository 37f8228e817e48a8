"""Domain exceptions raised by services and translated by the HTTP layer."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ConclaveError(Exception):
    """Base class for every error the API reports to callers.

    Attributes:
        status_code: HTTP status the error maps to.
        detail: Human-readable message safe to return to the caller.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> dict[str, str]:
        return {"detail": self.detail}


class ValidationError(ConclaveError):
    """Malformed identifier, missing field or invalid value."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(ConclaveError):
    """Missing, invalid or expired bearer credential."""

    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(ConclaveError):
    """Caller is a participant but lacks the required role."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ConclaveError):
    """Entity is absent, or hidden from a non-participant."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ConclaveError):
    """Uniqueness violation such as a duplicate participant."""

    status_code = status.HTTP_409_CONFLICT


class GoneError(ConclaveError):
    """An invite existed but reached a terminal state."""

    status_code = status.HTTP_410_GONE

    def __init__(self, detail: str, reason: str) -> None:
        super().__init__(detail)
        self.reason = reason

    def to_payload(self) -> dict[str, str]:
        return {"detail": self.detail, "reason": self.reason}


class UpstreamUnavailableError(ConclaveError):
    """The identity service could not be reached or failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def register_exception_handlers(app: FastAPI) -> None:
    """Attach JSON handlers for domain errors and unexpected failures."""

    @app.exception_handler(ConclaveError)
    async def conclave_error_handler(request: Request, exc: ConclaveError) -> JSONResponse:
        if isinstance(exc, AuthenticationError | UpstreamUnavailableError):
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
