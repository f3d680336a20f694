"""Custom exceptions for APISIX Bridge clients.

This module defines exception classes for handling the error conditions
that can occur while talking to the gateway's Admin and Control APIs.
"""


class ApisixBridgeError(Exception):
    """Base exception for all APISIX Bridge errors."""

    pass


class APIError(ApisixBridgeError):
    """Base class for HTTP-level errors (non-2xx responses)."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class BadRequestError(APIError):
    """Raised when the gateway rejects a request (400 Bad Request).

    The capability resolver treats this on a paginated probe as the signal
    that the server does not understand ``page``/``page_size``.
    """

    pass


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    @property
    def is_missing_route(self) -> bool:
        """True when the gateway has no such API at all, not just no such entity."""
        return "route not found" in self.message.lower()


class MethodNotAllowedError(APIError):
    """Raised when the endpoint exists but rejects the HTTP method (405)."""

    pass


class ConflictError(APIError):
    """Raised when a resource conflict occurs (409 Conflict)."""

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(ApisixBridgeError):
    """Raised when network-related errors occur (DNS, refused connections, resets)."""

    pass


class RequestTimeoutError(NetworkError):
    """Raised when a request exceeds its timeout.

    Kept distinct from other network errors so callers can decide whether a
    retry is worthwhile.
    """

    pass


class ParseError(ApisixBridgeError):
    """Raised when an import payload cannot be parsed."""

    def __init__(self, message: str, detail: str | None = None, fmt: str | None = None):
        """Initialize parse error.

        Args:
            message: Error message
            detail: Parser diagnostic (line/column, offending token)
            fmt: Format that was being parsed (json or yaml)
        """
        self.message = message
        self.detail = detail
        self.fmt = fmt
        text = message
        if fmt:
            text = f"[{fmt}] {text}"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


class ValidationError(ApisixBridgeError):
    """Raised when caller-supplied data fails a pre-flight check.

    Always raised before any network call is made.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        """Initialize validation error.

        Args:
            message: Error message
            errors: Individual validation failures
        """
        self.message = message
        self.errors = errors or []
        if self.errors:
            super().__init__(f"{message}: {'; '.join(self.errors)}")
        else:
            super().__init__(message)


class StateError(ApisixBridgeError):
    """Raised when an entity's current content does not allow a requested edit."""

    pass

class UnsupportedFeatureError(ApisixBridgeError):
    """Raised when the connected gateway does not support a feature."""

    def __init__(self, feature: str, major_version: str | None = None):
        self.feature = feature
        self.major_version = major_version
        msg = f"Feature '{feature}' is not supported by this gateway"
        if major_version:
            msg = f"{msg} (detected major version {major_version})"
        super().__init__(msg)


class ConfigurationError(ApisixBridgeError):
    """Raised when configuration is invalid or missing."""

    pass
