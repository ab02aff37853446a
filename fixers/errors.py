"""
Domain errors raised by the services.

Each error carries the HTTP status the API layer answers with; the handler
registered in `fixers.main` turns them into `{"detail": ...}` responses.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class FixersError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FixersError):
    """Agent, fixer, relationship, order or badge request is absent."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(FixersError):
    """The entity is not in the state the transition requires."""

    status_code = status.HTTP_409_CONFLICT


class InsufficientBalanceError(FixersError):
    """A withdrawal exceeds the agent's wallet balance."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidAmountError(FixersError, ValueError):
    """Malformed money or percentage input."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class FixerLimitReachedError(FixersError):
    """The agent already manages its maximum number of fixers."""

    status_code = status.HTTP_400_BAD_REQUEST


class SignatureInvalidError(FixersError):
    """A webhook payload failed signature verification."""

    status_code = status.HTTP_400_BAD_REQUEST


async def fixers_error_handler(request: Request, exc: FixersError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )
