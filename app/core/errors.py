from typing import Any, Dict, Optional
from fastapi import status


class BreakdownServiceError(Exception):
    """
    Base class for every failure surfaced to a user action.
    Each subclass carries the HTTP status the API answers with.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(BreakdownServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(BreakdownServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthRequired(BreakdownServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Please log in!"):
        super().__init__(message)


class UnauthorizedRole(BreakdownServiceError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Unauthorized role."):
        super().__init__(message)


class NotFound(BreakdownServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransition(BreakdownServiceError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_state: Optional[str], attempted_state: str, reason: Optional[str] = None):
        super().__init__(
            reason or f"Transition from {current_state} to {attempted_state} is not permitted.",
            extra={"current_state": current_state, "attempted_state": attempted_state},
        )
        self.current_state = current_state
        self.attempted_state = attempted_state
