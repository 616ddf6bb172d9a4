"""API client for Akamai NetStorage."""

from __future__ import annotations

import asyncio
import logging
import os
import xml.etree.ElementTree as ET
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

import httpx

from .auth import build_auth_headers
from .config import NetStorageConfig
from .exceptions import (
    NetStorageAPIError,
    NetStorageCancelledError,
    NetStorageInvalidResponseError,
    NetStorageNetworkError,
    NetStorageNotFoundError,
    NetStorageValidationError,
    api_error_for_status,
)
from .models import (
    DirectoryInfo,
    DirectoryListing,
    DiskUsage,
    NetStorageFile,
    OperationStatus,
)
from .rate_limit import RateLimiters, create_rate_limiters, select_limiter
from .retry import RetryPolicy, create_retry_policy, execute_with_retries
from .utils import DEFAULT_CHUNK_SIZE, parse_int

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RequestOptions:
    """Per-call request settings."""

    timeout: Optional[float] = None
    """Timeout in seconds, overriding the configured default"""

    cancel: Optional[asyncio.Event] = None
    """Setting this event aborts the call with NetStorageCancelledError"""


@dataclass(frozen=True)
class RemotePathInfo:
    """What a remote path turned out to be.

    ``file`` is set when the path is a file, ``du`` when it is a directory;
    both are None when the path does not exist.
    """

    file: Optional[NetStorageFile] = None
    du: Optional[DiskUsage] = None


def _parse_xml(content: bytes) -> Optional[ET.Element]:
    """Parse an XML response body, returning None for non-XML bodies."""
    if not content.lstrip().startswith(b"<"):
        return None
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise NetStorageInvalidResponseError(f"Invalid XML response: {e}") from e


async def _iter_file(path: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Read a local file in chunks without blocking the event loop."""
    f = await asyncio.to_thread(open, path, "rb")
    try:
        while True:
            chunk = await asyncio.to_thread(f.read, chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        await asyncio.to_thread(f.close)


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class NetStorageClient:
    """Client for interacting with the NetStorage HTTP API.

    Every remote operation is signed, rate limited and retried with
    exponential backoff on transient failures.

    Examples:
        >>> async with NetStorageClient(config) as client:
        ...     listing = await client.list_directory("/123456/photos")
    """

    def __init__(
        self,
        config: NetStorageConfig,
        rate_limiters: Optional[RateLimiters] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_policy_factory: Optional[Callable[[str], RetryPolicy]] = None,
    ):
        """Initialize NetStorage API client.

        Args:
            config: Credentials and request defaults
            rate_limiters: Shared rate limiters (created from config if omitted)
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
            retry_policy_factory: Optional override mapping a method name to
                its retry policy
        """
        self.config = config
        self.rate_limiters = rate_limiters or create_rate_limiters(config.rate_limits)
        self._transport = transport
        self._retry_policy_factory = retry_policy_factory
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NetStorageClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # Request plumbing
    # =========================================================================

    def _retry_policy(self, method: str) -> RetryPolicy:
        if self._retry_policy_factory is not None:
            return self._retry_policy_factory(method)
        return create_retry_policy(method, select_limiter(method, self.rate_limiters))

    async def _call(
        self,
        method: str,
        operation: Callable[[], Awaitable[T]],
        options: Optional[RequestOptions] = None,
    ) -> T:
        """Run an operation under the method's retry policy and cancel event."""
        return await execute_with_retries(
            self._retry_policy(method),
            lambda: self._run_cancellable(operation(), options),
        )

    async def _run_cancellable(
        self, awaitable: Awaitable[T], options: Optional[RequestOptions]
    ) -> T:
        cancel = options.cancel if options is not None else None
        if cancel is None:
            return await awaitable

        request = asyncio.ensure_future(awaitable)
        if cancel.is_set():
            request.cancel()
            raise NetStorageCancelledError("Request aborted")

        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {request, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()
        if request in done:
            return request.result()

        raise NetStorageCancelledError("Request aborted")

    def _timeout(self, options: Optional[RequestOptions]) -> float:
        if options is not None and options.timeout is not None:
            return options.timeout
        return self.config.timeout

    def _error_from_response(
        self, response: httpx.Response, method: str, path: str
    ) -> NetStorageAPIError:
        """Build the classified error for a failed response."""
        status_code = response.status_code
        message = (
            f"Unexpected HTTP {status_code} received from server "
            f"for request to: {path}"
        )
        body = response.text.strip()
        if body:
            message = f"{message}. Body: {body}"
        return api_error_for_status(
            status_code, message, method=method, url=str(response.request.url)
        )

    async def _send(
        self,
        method: str,
        path: str,
        action: str,
        params: Optional[dict[str, str]] = None,
        options: Optional[RequestOptions] = None,
        content: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Send one signed request (no retries).

        Raises:
            NetStorageAPIError: If the server answers with status >= 300
            NetStorageNetworkError: On connection failures and timeouts
        """
        request_path = self.config.request_path(path)
        url = self.config.uri(path)
        request_headers = build_auth_headers(self.config, request_path, action, params)
        if headers:
            request_headers.update(headers)

        logger.debug(f"Requesting: {method} {url} (action: {action})")

        try:
            response = await self._get_client().request(
                method,
                url,
                headers=request_headers,
                content=content,
                timeout=self._timeout(options),
            )
        except httpx.TimeoutException as e:
            raise NetStorageNetworkError(f"Request timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise NetStorageNetworkError(f"Network error: {method} {url}: {e}") from e

        logger.debug(f"Response for {path}: HTTP {response.status_code}")

        if response.status_code >= 300:
            raise self._error_from_response(response, method, path)
        return response

    # =========================================================================
    # Read operations
    # =========================================================================

    async def list_directory(
        self, path: str, options: Optional[RequestOptions] = None
    ) -> DirectoryListing:
        """List the direct children of a remote directory.

        Args:
            path: Remote directory path
            options: Per-call request options

        Returns:
            DirectoryListing with children in server order

        Raises:
            NetStorageNotFoundError: If the directory does not exist
        """

        async def operation() -> DirectoryListing:
            response = await self._send("GET", path, "dir", options=options)
            root = _parse_xml(response.content)
            if root is None:
                return DirectoryListing(directory=path)
            return DirectoryListing(
                directory=root.get("directory", path),
                files=[
                    NetStorageFile.from_attributes(dict(element.attrib))
                    for element in root.iter("file")
                ],
            )

        return await self._call("dir", operation, options)

    async def get_metadata(
        self, path: str, options: Optional[RequestOptions] = None
    ) -> NetStorageFile:
        """Get metadata for a remote file, directory or symlink.

        Raises:
            NetStorageNotFoundError: If the path does not exist
        """

        async def operation() -> NetStorageFile:
            response = await self._send("GET", path, "stat", options=options)
            root = _parse_xml(response.content)
            element = root.find("file") if root is not None else None
            if element is None:
                raise NetStorageNotFoundError(
                    f"No metadata returned for {path}", status_code=404
                )
            return NetStorageFile.from_attributes(dict(element.attrib))

        return await self._call("stat", operation, options)

    async def disk_usage(
        self, path: str, options: Optional[RequestOptions] = None
    ) -> DiskUsage:
        """Get the file count and byte total of a remote directory."""

        async def operation() -> DiskUsage:
            response = await self._send("GET", path, "du", options=options)
            root = _parse_xml(response.content)
            info = root.find("du-info") if root is not None else None
            if root is None or info is None:
                raise NetStorageInvalidResponseError(f"Malformed du response for {path}")
            return DiskUsage(
                directory=root.get("directory", path),
                files=parse_int(info.get("files")) or 0,
                bytes=parse_int(info.get("bytes")) or 0,
            )

        return await self._call("du", operation, options)

    # =========================================================================
    # Transfers
    # =========================================================================

    async def upload_file(
        self,
        local_path: str,
        remote_path: str,
        options: Optional[RequestOptions] = None,
    ) -> OperationStatus:
        """Upload a local file, replacing the remote file if present.

        Raises:
            NetStorageValidationError: If the local file does not exist
        """
        if not await asyncio.to_thread(os.path.isfile, local_path):
            raise NetStorageValidationError(f"Local file not found: {local_path}")
        logger.debug(f"Uploading {local_path} -> {remote_path}")

        async def operation() -> OperationStatus:
            size = await asyncio.to_thread(os.path.getsize, local_path)
            response = await self._send(
                "PUT",
                remote_path,
                "upload",
                params={"upload-type": "binary"},
                options=options,
                content=_iter_file(local_path),
                headers={"Content-Length": str(size)},
            )
            return OperationStatus(code=response.status_code)

        return await self._call("upload", operation, options)

    async def download_file(
        self,
        remote_path: str,
        local_path: str,
        options: Optional[RequestOptions] = None,
    ) -> OperationStatus:
        """Download a remote file to a local path.

        The parent directory of ``local_path`` must exist.
        """
        logger.debug(f"Downloading {remote_path} -> {local_path}")

        async def operation() -> OperationStatus:
            request_path = self.config.request_path(remote_path)
            url = self.config.uri(remote_path)
            headers = build_auth_headers(self.config, request_path, "download")
            try:
                async with self._get_client().stream(
                    "GET", url, headers=headers, timeout=self._timeout(options)
                ) as response:
                    if response.status_code >= 300:
                        await response.aread()
                        raise self._error_from_response(response, "GET", remote_path)
                    f = await asyncio.to_thread(open, local_path, "wb")
                    try:
                        try:
                            async for chunk in response.aiter_bytes(DEFAULT_CHUNK_SIZE):
                                await asyncio.to_thread(f.write, chunk)
                        finally:
                            await asyncio.to_thread(f.close)
                    except Exception:
                        await asyncio.to_thread(_remove_partial, local_path)
                        raise
                    return OperationStatus(code=response.status_code)
            except httpx.TimeoutException as e:
                raise NetStorageNetworkError(f"Download timed out: {url}") from e
            except httpx.RequestError as e:
                raise NetStorageNetworkError(
                    f"Network error during download: {e}"
                ) from e

        return await self._call("download", operation, options)

    # =========================================================================
    # Write operations
    # =========================================================================

    async def _put(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        options: Optional[RequestOptions] = None,
    ) -> OperationStatus:
        async def operation() -> OperationStatus:
            response = await self._send(
                "PUT",
                path,
                method,
                params=params,
                options=options,
            )
            return OperationStatus(code=response.status_code)

        return await self._call(method, operation, options)

    async def delete_file(
        self, path: str, options: Optional[RequestOptions] = None
    ) -> OperationStatus:
        """Delete a remote file or symlink."""
        logger.debug(f"rm {path}")
        return await self._put("rm", path, options=options)

    async def delete_directory(
        self, path: str, options: Optional[RequestOptions] = None
    ) -> OperationStatus:
        """Delete an empty remote directory."""
        logger.debug(f"rmdir {path}")
        return await self._put("rmdir", path, options=options)

    async def make_directory(
        self, path: str, options: Optional[RequestOptions] = None
    ) -> OperationStatus:
        """Create a remote directory."""
        logger.debug(f"mkdir {path}")
        return await self._put("mkdir", path, options=options)

    async def create_symlink(
        self, target: str, link_path: str, options: Optional[RequestOptions] = None
    ) -> OperationStatus:
        """Create a symlink at ``link_path`` pointing to ``target``."""
        logger.debug(f"symlink {link_path} -> {target}")
        return await self._put(
            "symlink", link_path, params={"target": target}, options=options
        )

    async def set_mtime(
        self, path: str, date: datetime, options: Optional[RequestOptions] = None
    ) -> OperationStatus:
        """Set the modification time of a remote file or directory.

        Raises:
            NetStorageValidationError: If ``date`` is not a datetime
        """
        if not isinstance(date, datetime):
            raise NetStorageValidationError("The date has to be a datetime instance")
        unix_seconds = int(date.timestamp())
        logger.debug(f"mtime {path} -> {unix_seconds}")
        return await self._put(
            "mtime", path, params={"mtime": str(unix_seconds)}, options=options
        )

    async def rename(
        self, path_from: str, path_to: str, options: Optional[RequestOptions] = None
    ) -> OperationStatus:
        """Rename (move) a remote file."""
        logger.debug(f"rename {path_from} -> {path_to}")
        return await self._put(
            "rename", path_from, params={"destination": path_to}, options=options
        )

    # =========================================================================
    # Existence helpers
    # =========================================================================

    async def file_exists(self, path: str) -> bool:
        """Check whether anything exists at a remote path."""
        try:
            await self.get_metadata(path)
            return True
        except NetStorageNotFoundError:
            return False

    async def inspect_remote_path(
        self, path: str, kind: str = "any"
    ) -> RemotePathInfo:
        """Determine whether a remote path is a file or a directory.

        Stats the path first (unless ``kind`` is "directory") and falls back
        to ``du`` for directories (explicit or implicit).

        Args:
            path: Remote path to inspect
            kind: "file", "directory" or "any"

        Returns:
            RemotePathInfo (empty when the path does not exist)
        """
        if kind != "directory":
            try:
                meta = await self.get_metadata(path)
                if meta.is_file:
                    return RemotePathInfo(file=meta)
            except NetStorageNotFoundError:
                if kind == "file":
                    return RemotePathInfo()

        if kind != "file":
            try:
                return RemotePathInfo(du=await self.disk_usage(path))
            except NetStorageNotFoundError:
                pass
        return RemotePathInfo()

    async def is_file(self, path: str) -> bool:
        """Check whether a remote path is a file."""
        info = await self.inspect_remote_path(path, kind="file")
        return info.file is not None

    async def is_directory(self, path: str) -> bool:
        """Check whether a remote path is a directory."""
        info = await self.get_directory_info(path)
        return info.exists

    async def get_directory_info(self, path: str) -> DirectoryInfo:
        """Get existence, emptiness and totals of a remote directory."""
        try:
            usage = await self.disk_usage(path)
        except NetStorageNotFoundError:
            return DirectoryInfo(
                exists=False, is_empty=False, file_count=0, byte_count=0, path=path
            )
        return DirectoryInfo(
            exists=True,
            is_empty=usage.files <= 1 and usage.bytes == 0,
            file_count=usage.files,
            byte_count=usage.bytes,
            path=usage.directory,
        )
