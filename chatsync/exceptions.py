"""
Error taxonomy for the messaging core.

    ChatError
    ├── ValidationError
    │   └── InvalidConversationError
    ├── UnauthorizedError
    ├── NotFoundError
    ├── ConflictError
    │   ├── AlreadyFriendsError
    │   └── NotFriendsError
    └── TransientError

Every error carries a machine-readable ``error_code`` and optional
``details``; ``to_dict()`` is the body the HTTP layer returns.
"""

from typing import Any, Dict, Optional


class ChatError(Exception):

    default_error_code: str = "CHAT_ERROR"
    status_code: int = 400

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(ChatError):
    """Malformed input, rejected before any write."""

    default_error_code = "VALIDATION_ERROR"
    status_code = 400


class InvalidConversationError(ValidationError):
    """A direct conversation needs two distinct participants."""

    default_error_code = "INVALID_CONVERSATION"


class UnauthorizedError(ChatError):

    default_error_code = "UNAUTHORIZED"
    status_code = 403


class NotFoundError(ChatError):

    default_error_code = "NOT_FOUND"
    status_code = 404


class ConflictError(ChatError):
    """State conflict; callers treat it as a no-op notice."""

    default_error_code = "CONFLICT"
    status_code = 409


class AlreadyFriendsError(ConflictError):

    default_error_code = "ALREADY_FRIENDS"


class NotFriendsError(ConflictError):

    default_error_code = "NOT_FRIENDS"


class TransientError(ChatError):
    """The remote store stayed unreachable after every retry."""

    default_error_code = "TRANSIENT_FAILURE"
    status_code = 503
