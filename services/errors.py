"""
Use-case failures raised by the services.

Messages are safe to return to a client. A caller never learns which part of a
credential check failed.
"""
from __future__ import annotations

from models.errors import (  # noqa: F401
    AppError,
    InvalidOperationError,
    PersistenceError,
    ValidationFailedError,
)


class InvalidCredentialsError(AppError):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    default_message = "Authentication is required"


class ConflictError(AppError):
    code = "RESOURCE_CONFLICT"

    def __init__(self, resource: str, value: str, message: str | None = None):
        self.resource = resource
        self.value = value
        super().__init__(message or f"{resource} with value '{value}' already exists")


class NotFoundError(AppError):
    code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} with identifier '{resource_id}' was not found")


class ConfigurationError(AppError):
    """Invalid settings; fatal at startup, never retried."""

    code = "CONFIGURATION_ERROR"
    default_message = "The authentication settings are invalid"
