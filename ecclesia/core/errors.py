"""Shared error taxonomy for domain services.

Every service error subclasses ``DomainError`` and carries a machine-readable
``code`` plus an ``ErrorKind``. Routers turn them into HTTP errors with
``handle_domain_error``; anything that is not a ``DomainError`` is left for
the global exception handler.
"""

from enum import Enum

from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    """Error categories shared by all feature packages."""

    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"


KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class DomainError(Exception):
    """Base error raised by domain services."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: str = "domain_error",
        kind: ErrorKind | None = None,
    ):
        self.message = message
        self.code = code
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code} ({self.kind.value})>"


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class BadRequestError(DomainError):
    kind = ErrorKind.BAD_REQUEST


class ForbiddenError(DomainError):
    kind = ErrorKind.FORBIDDEN


class ConflictError(DomainError):
    kind = ErrorKind.CONFLICT


class UnavailableError(DomainError):
    kind = ErrorKind.UNAVAILABLE


class NotAuthorizedError(ForbiddenError):
    """Authenticated caller lacks the role a check requires.

    ``check`` names the failed check (``organization_manager``,
    ``batch_staff``...) so clients can tell which gate refused them.
    """

    def __init__(self, check: str, message: str | None = None):
        self.check = check
        super().__init__(
            message or f"Not authorized: {check} check failed",
            "not_authorized",
        )


def handle_domain_error(error: DomainError) -> HTTPException:
    """Convert a domain error to an HTTP exception.

    Internal errors never expose their message.
    """
    status_code = KIND_STATUS.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail = (
        "Internal server error"
        if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        else error.message
    )
    return HTTPException(status_code=status_code, detail=detail)
