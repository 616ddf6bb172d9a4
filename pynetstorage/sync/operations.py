"""Sync operations wrapper for unified upload/download interface."""

import asyncio
import os
from typing import TYPE_CHECKING

from ..models import OperationStatus

if TYPE_CHECKING:
    from ..api import NetStorageClient


class SyncOperations:
    """The remote and local I/O performed by the sync engine."""

    def __init__(self, client: "NetStorageClient"):
        """Initialize sync operations.

        Args:
            client: NetStorage API client
        """
        self.client = client

    async def upload_file(self, local_path: str, remote_path: str) -> OperationStatus:
        """Upload a local file to remote storage."""
        return await self.client.upload_file(local_path, remote_path)

    async def download_file(self, remote_path: str, local_path: str) -> OperationStatus:
        """Download a remote file, creating the local parent directory first.

        Args:
            remote_path: Remote file path
            local_path: Local path where the file should be saved

        Returns:
            Status of the download request
        """
        parent = os.path.dirname(local_path)
        if parent:
            await asyncio.to_thread(os.makedirs, parent, exist_ok=True)
        return await self.client.download_file(remote_path, local_path)

    async def delete_remote(self, remote_path: str) -> OperationStatus:
        """Delete a remote file."""
        return await self.client.delete_file(remote_path)

    async def delete_local(self, local_path: str) -> None:
        """Delete a local file permanently."""
        await asyncio.to_thread(os.remove, local_path)
