"""
Custom exceptions for httpbuilder
"""


class HttpBuilderError(Exception):
    """Base exception for all httpbuilder errors"""

    pass


class InvalidURL(HttpBuilderError, ValueError):
    """Raised when a request target cannot be parsed"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL '{url}': {reason}")


class TLSConfigurationError(HttpBuilderError):
    """
    Raised when TLS trust material cannot be turned into an SSL context.

    This includes:
    - Unreadable or missing trust-store files
    - Wrong trust-store password
    - Files that contain no usable certificates
    """

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class UnsupportedOperationError(HttpBuilderError):
    """Raised when a body is attached to a method that does not enclose one"""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Can't add data to {method} request")


class TransportError(HttpBuilderError):
    """
    Raised when sending a request fails below the HTTP layer.

    Connection refused, DNS failures, TLS handshake failures and timeouts all
    end up here. The underlying exception is kept in ``cause`` and chained.
    """

    def __init__(self, url: str, cause: BaseException):
        self.url = url
        self.cause = cause
        super().__init__(f"Request to {url} failed: {cause}")


class ResponseParseError(HttpBuilderError):
    """Raised when a response body cannot be decoded as requested"""

    def __init__(self, message: str, body: str | None = None):
        self.body = body
        super().__init__(message)


class WaiterTimeoutError(HttpBuilderError):
    """
    Raised when a waiter condition is not met before its timeout.

    Carries whatever the last poll produced so callers can see why.
    """

    def __init__(
        self,
        url: str,
        timeout: float,
        last_response=None,
        last_error: BaseException | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.last_response = last_response
        self.last_error = last_error

        if last_response is not None:
            detail = f"last status {last_response.code}"
        elif last_error is not None:
            detail = f"last error: {last_error}"
        else:
            detail = "no response received"

        super().__init__(f"Condition on {url} not met within {timeout}s ({detail})")


class ConfigurationError(HttpBuilderError):
    """
    Raised when required configuration values are missing or invalid.
    """

    def __init__(self, message: str, config_key: str | None = None):
        self.config_key = config_key
        if config_key:
            super().__init__(f"Configuration error for '{config_key}': {message}")
        else:
            super().__init__(f"Configuration error: {message}")
