"""
Error taxonomy shared by the auth, credential and calendar layers.

Every error carries a stable ``code`` and a message that is safe to show to
the end user.  Raw provider responses go into ``details`` for logging only;
``api.middleware`` never serialises them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for all classified failures."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


# ── Authorization ───────────────────────────────────────────────────────


class Unauthenticated(AppError):
    status_code = 401
    default_code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class Unauthorized(AppError):
    """Principal is not the resource owner.  The message never varies."""

    status_code = 403
    default_code = "UNAUTHORIZED"
    default_message = "You do not have access to this resource"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(details=details)


# ── Credential lifecycle ────────────────────────────────────────────────


class NotConnected(AppError):
    status_code = 404
    default_code = "NOT_CONNECTED"
    default_message = "Integration not connected. Please connect your account first."


class AlreadyConnected(AppError):
    status_code = 409
    default_code = "ALREADY_CONNECTED"
    default_message = "Integration already connected. Disconnect it before reconnecting."


class CredentialRevoked(AppError):
    status_code = 401
    default_code = "CREDENTIAL_REVOKED"
    default_message = "Access to your account was revoked. Please reconnect the integration."


class RefreshFailed(AppError):
    status_code = 503
    default_code = "REFRESH_FAILED"
    default_message = "Could not refresh provider credentials. Please try again."


class InvalidCode(AppError):
    status_code = 400
    default_code = "INVALID_CODE"
    default_message = "The authorization code was rejected by the provider"


class InvalidState(AppError):
    status_code = 400
    default_code = "INVALID_STATE"
    default_message = "Invalid or expired OAuth state"


# ── Remote calls and plumbing ───────────────────────────────────────────


class EventNotFound(AppError):
    status_code = 404
    default_code = "EVENT_NOT_FOUND"
    default_message = "Calendar event not found"


class ProviderError(AppError):
    status_code = 502
    default_code = "PROVIDER_ERROR"
    default_message = "The calendar provider returned an error"

    def __init__(
        self,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.upstream_status = upstream_status
        super().__init__(message, details=details)


class EmailDeliveryError(AppError):
    status_code = 500
    default_code = "EMAIL_DELIVERY_FAILED"
    default_message = "Unable to send magic link"


class ConfigurationError(AppError):
    status_code = 500
    default_code = "CONFIGURATION_ERROR"
    default_message = "Server configuration error"
