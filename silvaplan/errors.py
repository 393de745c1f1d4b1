"""Error types surfaced by the assistant core."""


class ConfigurationError(Exception):
    """Raised when the assistant is not configured (missing API key, unknown provider)."""


class ValidationError(ValueError):
    """Raised when coordinates fail validation at a write boundary."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"Invalid {label} coordinates")


class TransportError(Exception):
    """Raised when a vendor HTTP call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(TransportError):
    """Vendor rejected the API key (HTTP 401)."""


class RateLimitError(TransportError):
    """Vendor rate limit exceeded (HTTP 429)."""


class BadRequestError(TransportError):
    """Vendor rejected the request body (HTTP 400)."""


class RequestTimeoutError(TransportError):
    """Vendor call exceeded the hard timeout."""
