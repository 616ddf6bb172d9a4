"""Exceptions raised by the NetStorage client and sync engine."""

from typing import Optional


class NetStorageError(Exception):
    """Base class for all pynetstorage errors."""


class NetStorageConfigError(NetStorageError):
    """Raised when a required configuration value is missing or invalid."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Missing or invalid `{field}` in configuration")


class NetStorageValidationError(NetStorageError, ValueError):
    """Raised for malformed input. Never retried."""


class NetStorageAPIError(NetStorageError):
    """Raised when the NetStorage API answers with an error status.

    Attributes:
        status_code: HTTP status code of the failed response
        method: HTTP method of the request
        url: Requested URL
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.url = url


class NetStorageNotFoundError(NetStorageAPIError):
    """Raised when the remote path does not exist (HTTP 404)."""


class NetStorageAuthenticationError(NetStorageAPIError):
    """Raised when the request signature is rejected (HTTP 401)."""


class NetStoragePermissionError(NetStorageAPIError):
    """Raised when access to the path is forbidden (HTTP 403)."""


class NetStorageRateLimitError(NetStorageAPIError):
    """Raised when the server throttles the client (HTTP 429)."""


class NetStorageInvalidResponseError(NetStorageError):
    """Raised when a response body cannot be parsed."""


class NetStorageNetworkError(NetStorageError):
    """Raised on connection failures and timeouts."""


class NetStorageCancelledError(NetStorageError):
    """Raised when a request is aborted through its cancel event."""


class NetStorageAmbiguityError(NetStorageError):
    """Raised when the local and remote path kinds conflict.

    Syncing a local file against a remote directory (or the reverse) leaves
    no safe way to infer what should be transferred.
    """


def api_error_for_status(
    status_code: int,
    message: str,
    method: Optional[str] = None,
    url: Optional[str] = None,
) -> NetStorageAPIError:
    """Build the classified API error for an HTTP status code.

    Args:
        status_code: HTTP status code
        message: Error message
        method: HTTP method of the request
        url: Requested URL

    Returns:
        NetStorageAPIError subclass matching the status code
    """
    error_class = {
        401: NetStorageAuthenticationError,
        403: NetStoragePermissionError,
        404: NetStorageNotFoundError,
        429: NetStorageRateLimitError,
    }.get(status_code, NetStorageAPIError)
    return error_class(message, status_code=status_code, method=method, url=url)
