"""Error taxonomy shared by services and the HTTP boundary."""

from enum import Enum

import pydantic


class ObserveReportError(Exception):
    """Base class for domain errors."""


class AuthErrorReason(Enum):
    """Reasons a login attempt can fail."""

    INVALID_CREDENTIALS = "invalid_credentials"


class SessionErrorReason(Enum):
    """Reasons a session token cannot be resolved."""

    MISSING = "missing"
    EXPIRED = "expired"


class AccountErrorReason(Enum):
    """Reasons an account cannot be created."""

    DUPLICATE_USERNAME = "duplicate_username"
    WEAK_PASSWORD = "weak_password"
    MISSING_FIELDS = "missing_fields"


class AuthError(ObserveReportError):
    """Credentials did not match a known identity."""

    def __init__(
        self, reason: AuthErrorReason = AuthErrorReason.INVALID_CREDENTIALS
    ) -> None:
        super().__init__("Invalid username or password")
        self.reason = reason


class SessionError(ObserveReportError):
    """A session token is absent, unknown or expired."""

    def __init__(self, reason: SessionErrorReason) -> None:
        super().__init__(f"Session {reason.value}")
        self.reason = reason


class AccountError(ObserveReportError):
    """An identity could not be created."""

    def __init__(self, reason: AccountErrorReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class Unauthorized(ObserveReportError):
    """Raised by the access guard when a request carries no usable session."""

    def __init__(self, reason: SessionErrorReason) -> None:
        super().__init__("Authentication required")
        self.reason = reason


class NotFound(ObserveReportError):
    """Requested entity does not exist."""


class ValidationError(ObserveReportError):
    """Input record or filter failed validation."""

    @classmethod
    def from_pydantic(cls, exc: pydantic.ValidationError) -> "ValidationError":
        """Build a readable error from a pydantic validation failure."""
        return cls(describe_validation_error(exc))


class GeocodingError(ObserveReportError):
    """Upstream geocoding lookup failed."""


class FieldCipherError(ObserveReportError):
    """A stored field could not be encrypted or decrypted."""


class ImageError(ObserveReportError):
    """An uploaded image was rejected."""


class ImageTooLarge(ImageError):
    """An uploaded image exceeds the size limit."""


def describe_validation_error(exc: pydantic.ValidationError) -> str:
    """Flatten pydantic errors into a single line."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid value"
