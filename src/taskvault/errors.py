from __future__ import annotations

from typing import Any, Dict, Optional


class TaskVaultError(Exception):
    """
    Base class for errors that map onto an HTTP response.

    The message is safe to show to clients; anything sensitive belongs in the
    server log, never here.
    """

    status_code: int = 500
    error_name: str = "InternalError"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error_name, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(TaskVaultError):
    status_code = 400
    error_name = "ValidationError"
    default_message = "Validation failed"


class AuthenticationError(TaskVaultError):
    status_code = 401
    error_name = "AuthenticationError"
    default_message = "Unauthorized"


class InvalidCredentialsError(AuthenticationError):
    """Raised for both unknown email and wrong password."""

    default_message = "Invalid credentials"


class AuthorizationError(TaskVaultError):
    status_code = 403
    error_name = "AuthorizationError"
    default_message = "Forbidden"


class NotFoundError(TaskVaultError):
    status_code = 404
    error_name = "NotFoundError"
    default_message = "Not found"


class ConflictError(TaskVaultError):
    status_code = 409
    error_name = "ConflictError"
    default_message = "Conflict"


class DuplicateEmailError(ConflictError):
    default_message = "Email already registered"


class DecryptionError(TaskVaultError):
    """Envelope is malformed or its authentication tag does not verify."""

    error_name = "DecryptionError"
    default_message = "Unable to decrypt value"


class InternalError(TaskVaultError):
    status_code = 500


class ConfigurationError(RuntimeError):
    """Invalid or missing configuration detected at startup."""
