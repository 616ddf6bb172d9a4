"""pynetstorage - Akamai NetStorage client with tree walks and directory sync."""

from .api import NetStorageClient, RemotePathInfo, RequestOptions
from .config import NetStorageConfig, RateLimitConfig, load_config
from .exceptions import (
    NetStorageAmbiguityError,
    NetStorageAPIError,
    NetStorageAuthenticationError,
    NetStorageCancelledError,
    NetStorageConfigError,
    NetStorageError,
    NetStorageInvalidResponseError,
    NetStorageNetworkError,
    NetStorageNotFoundError,
    NetStoragePermissionError,
    NetStorageRateLimitError,
    NetStorageValidationError,
)
from .models import NetStorageFile, RemoteEntry, TreeResult
from .retry import RetryPolicy, execute_with_retries
from .sync import SyncEngine, SyncEventHandler, SyncResult
from .tree import aggregate, build_tree

__all__ = [
    "NetStorageClient",
    "NetStorageConfig",
    "RateLimitConfig",
    "RemotePathInfo",
    "RequestOptions",
    "load_config",
    "NetStorageError",
    "NetStorageAPIError",
    "NetStorageAmbiguityError",
    "NetStorageAuthenticationError",
    "NetStorageCancelledError",
    "NetStorageConfigError",
    "NetStorageInvalidResponseError",
    "NetStorageNetworkError",
    "NetStorageNotFoundError",
    "NetStoragePermissionError",
    "NetStorageRateLimitError",
    "NetStorageValidationError",
    "NetStorageFile",
    "RemoteEntry",
    "TreeResult",
    "RetryPolicy",
    "execute_with_retries",
    "SyncEngine",
    "SyncEventHandler",
    "SyncResult",
    "aggregate",
    "build_tree",
]
