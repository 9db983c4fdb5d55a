"""Custom exception classes for the clubhouse API."""

from fastapi import HTTPException, status


class ClubhouseError(Exception):
    """Base exception for the clubhouse API."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(ClubhouseError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class PermissionDeniedError(ClubhouseError):
    """Raised when the permission matrix or a scope rule denies an action."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "not_authorized"


class NotFoundError(ClubhouseError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class PolicyViolationError(ClubhouseError):
    """Raised when a domain rule is broken (past-event RSVP, duplicate custom option, ...)."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"


class ResourceConflictError(ClubhouseError):
    """Raised when a resource already exists."""
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StorageFailureError(ClubhouseError):
    """Raised when the persistence layer fails."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "storage_failure"


# HTTP exception shortcuts
def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
