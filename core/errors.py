# core/errors.py
"""
Error taxonomy shared by services and routes.

Every error carries the HTTP status it maps to; ``main.py`` renders them as
``{"success": false, "error": ...}``.
"""
from typing import Any, Dict


class MessServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_content(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class ValidationError(MessServiceError):
    """Missing or out-of-range input (e.g. payment below minimum)."""
    status_code = 400


class AuthError(MessServiceError):
    """Missing or invalid caller credentials."""
    status_code = 401


class AuthorizationError(MessServiceError):
    """Authenticated, but not allowed to do this."""
    status_code = 403


class NotFoundError(MessServiceError):
    status_code = 404


class DuplicateError(MessServiceError):
    status_code = 400


class UnknownTransactionError(MessServiceError):
    """A gateway callback or poll referenced a transaction we never issued."""
    status_code = 400


class GatewayError(MessServiceError):
    """The payment gateway rejected the request or could not be reached."""
    status_code = 502

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable

    def to_content(self) -> Dict[str, Any]:
        content = super().to_content()
        content["retryable"] = self.retryable
        return content
