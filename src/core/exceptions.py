"""Custom exceptions for the deep research server."""

from enum import Enum


class MCPToolError(Exception):
    """Custom exception for MCP tool errors that should be returned as JSON-RPC errors."""

    def __init__(self, message: str, code: int = -32000):
        self.message = message
        self.code = code
        super().__init__(message)


# ========================================
# Base Exceptions
# ========================================


class DeepSearchError(Exception):
    """Base exception for all deep research errors."""


# ========================================
# Validation Exceptions
# ========================================


class ValidationError(DeepSearchError):
    """Base exception for validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation failed (e.g. a required credential is missing)."""


class InputValidationError(ValidationError):
    """Input parameter validation failed."""


# ========================================
# Network Exceptions
# ========================================


class NetworkError(DeepSearchError):
    """Base exception for network-related errors."""


class FetchError(NetworkError):
    """HTTP fetch operation failed."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class SearchError(NetworkError):
    """Search operation failed."""


# ========================================
# Parsing Exceptions
# ========================================


class ParseError(DeepSearchError):
    """Malformed HTML, JSON-LD or PDF content."""


# ========================================
# External Service Exceptions
# ========================================


class ExternalServiceError(DeepSearchError):
    """Base exception for external service errors."""


class QuotaErrorKind(str, Enum):
    """Kinds of paid-collaborator failures that need user action."""

    INVALID_CREDENTIAL = "invalid_credential"
    INSUFFICIENT_QUOTA = "insufficient_quota"
    RATE_LIMITED = "rate_limited"
    TIMED_OUT = "timed_out"


QUOTA_ERROR_HINTS: dict[QuotaErrorKind, tuple[str, str]] = {
    QuotaErrorKind.INVALID_CREDENTIAL: (
        "Invalid API key",
        "Please check your fetch service API key is correct.",
    ),
    QuotaErrorKind.INSUFFICIENT_QUOTA: (
        "Insufficient credits",
        "You've run out of fetch service credits. Please upgrade your plan.",
    ),
    QuotaErrorKind.RATE_LIMITED: (
        "Rate limit exceeded",
        "Too many requests. Please wait a moment and try again.",
    ),
    QuotaErrorKind.TIMED_OUT: (
        "Request timeout",
        "The deep search took too long. Try a more specific query.",
    ),
}


class CollaboratorQuotaError(ExternalServiceError):
    """Quota/auth failure from a paid collaborator; surfaced to the caller."""

    def __init__(self, kind: QuotaErrorKind, status: int | None = None):
        self.kind = kind
        self.status = status
        self.error, self.hint = QUOTA_ERROR_HINTS[kind]
        super().__init__(f"{self.error} (status={status})")

    def to_dict(self) -> dict[str, object]:
        """Render the error the way callers stream it to a UI."""
        data: dict[str, object] = {
            "type": "error",
            "kind": self.kind.value,
            "error": self.error,
            "suggestion": self.hint,
        }
        if self.status is not None:
            data["statusCode"] = self.status
        return data
