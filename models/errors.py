"""
Error taxonomy shared by the domain, storage and service layers.

Every error carries a stable ``code`` and a message that is safe to show to a
client. The HTTP adapter (api/errors.py) decides the status code; nothing in
here knows about HTTP.
"""
from __future__ import annotations


class AppError(Exception):
    """Base class for all expected failures."""

    code = "APPLICATION_ERROR"
    default_message = "The operation could not be completed"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} code={self.code} message={self.message!r}>"


class ValidationFailedError(AppError):
    """Field-level input violations; ``details`` maps field -> list of messages."""

    code = "VALIDATION_FAILED"
    default_message = "One or more validation errors occurred"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailedError":
        return cls(details={field: [message]})


class PersistenceError(AppError):
    code = "PERSISTENCE_FAILURE"
    default_message = "The change could not be saved"


class InvalidOperationError(AppError):
    code = "INVALID_OPERATION"
    default_message = "The operation is not valid in the current state"


class UserNotActiveError(InvalidOperationError):
    code = "USER_NOT_ACTIVE"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} is not active and cannot perform this operation")


class UserAlreadyActiveError(InvalidOperationError):
    code = "USER_ALREADY_ACTIVE"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} is already active")


class UserAlreadyDeactivatedError(InvalidOperationError):
    code = "USER_ALREADY_DEACTIVATED"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} is already deactivated")


class EmailAlreadyVerifiedError(InvalidOperationError):
    code = "EMAIL_ALREADY_VERIFIED"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Email for user {user_id} is already verified")
