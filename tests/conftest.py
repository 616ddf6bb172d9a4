"""Shared fixtures: an in-memory NetStorage client and local tree helpers."""

import asyncio
import hashlib
import os
from pathlib import Path
from typing import Optional

import pytest

from pynetstorage.api import RemotePathInfo
from pynetstorage.exceptions import NetStorageAPIError, NetStorageNotFoundError
from pynetstorage.models import (
    DirectoryInfo,
    DirectoryListing,
    DiskUsage,
    NetStorageFile,
    OperationStatus,
)

DEFAULT_MTIME = 1_700_000_000


class FakeNetStorageClient:
    """In-memory stand-in for NetStorageClient.

    Files live in ``files`` keyed by absolute remote path; directories are
    implicit unless added with ``add_dir``. ``fail_paths`` makes transfers
    and deletes of those paths fail, ``fail_listings`` makes listings fail.
    """

    def __init__(self, delay: float = 0.0):
        self.files: dict[str, tuple[bytes, int]] = {}
        self.dirs: set[str] = set()
        self.symlinks: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_paths: set[str] = set()
        self.fail_listings: set[str] = set()
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    # -- setup helpers -------------------------------------------------------

    def add_file(self, path: str, content: bytes = b"", mtime: int = DEFAULT_MTIME):
        self.files[path] = (content, mtime)

    def add_dir(self, path: str):
        self.dirs.add(path.rstrip("/"))

    def add_symlink(self, path: str, target: str):
        self.symlinks[path] = target

    # -- internals -----------------------------------------------------------

    @staticmethod
    def _norm(path: str) -> str:
        return path.rstrip("/")

    def _is_dir(self, path: str) -> bool:
        path = self._norm(path)
        if path == "" or path in self.dirs:
            return True
        prefix = path + "/"
        return any(
            p.startswith(prefix)
            for p in list(self.files) + list(self.dirs) + list(self.symlinks)
        )

    def _file_meta(self, path: str) -> NetStorageFile:
        content, mtime = self.files[path]
        return NetStorageFile(
            type="file",
            name=path.rsplit("/", 1)[-1],
            mtime=mtime,
            size=len(content),
            md5=hashlib.md5(content).hexdigest(),
        )

    def _children(self, directory: str) -> list[NetStorageFile]:
        prefix = self._norm(directory) + "/"
        children: dict[str, NetStorageFile] = {}
        for path in sorted(set(self.files) | self.dirs | set(self.symlinks)):
            if not path.startswith(prefix):
                continue
            rest = path[len(prefix) :]
            name = rest.split("/", 1)[0]
            if "/" in rest or path in self.dirs:
                children.setdefault(
                    name,
                    NetStorageFile(
                        type="dir",
                        name=name,
                        mtime=DEFAULT_MTIME,
                        implicit=(prefix + name) not in self.dirs,
                    ),
                )
            elif path in self.symlinks:
                children[name] = NetStorageFile(
                    type="symlink", name=name, target=self.symlinks[path]
                )
            else:
                children[name] = self._file_meta(path)
        return [children[name] for name in sorted(children)]

    async def _io(self, method: str, path: str):
        self.calls.append((method, path))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if path in self.fail_paths:
                raise NetStorageAPIError(f"Injected failure for {path}", status_code=500)
        finally:
            self.in_flight -= 1

    # -- client surface ------------------------------------------------------

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def list_directory(self, path: str, options=None) -> DirectoryListing:
        self.calls.append(("dir", path))
        norm = self._norm(path)
        if norm in self.fail_listings:
            raise NetStorageAPIError(f"Listing failed for {path}", status_code=500)
        if not self._is_dir(norm):
            raise NetStorageNotFoundError(f"{path} not found", status_code=404)
        return DirectoryListing(directory=path, files=self._children(norm))

    async def get_metadata(self, path: str, options=None) -> NetStorageFile:
        self.calls.append(("stat", path))
        if path in self.files:
            return self._file_meta(path)
        if self._is_dir(path):
            return NetStorageFile(type="dir", name=self._norm(path).rsplit("/", 1)[-1])
        raise NetStorageNotFoundError(f"{path} not found", status_code=404)

    async def disk_usage(self, path: str, options=None) -> DiskUsage:
        self.calls.append(("du", path))
        if not self._is_dir(path):
            raise NetStorageNotFoundError(f"{path} not found", status_code=404)
        prefix = self._norm(path) + "/"
        contents = [c for p, (c, _) in self.files.items() if p.startswith(prefix)]
        return DiskUsage(
            directory=path, files=len(contents), bytes=sum(len(c) for c in contents)
        )

    async def upload_file(self, local_path: str, remote_path: str, options=None):
        await self._io("upload", remote_path)
        content = Path(local_path).read_bytes()
        self.files[remote_path] = (content, int(os.path.getmtime(local_path)))
        return OperationStatus(code=200)

    async def download_file(self, remote_path: str, local_path: str, options=None):
        await self._io("download", remote_path)
        if remote_path not in self.files:
            raise NetStorageNotFoundError(f"{remote_path} not found", status_code=404)
        Path(local_path).write_bytes(self.files[remote_path][0])
        return OperationStatus(code=200)

    async def delete_file(self, path: str, options=None):
        await self._io("rm", path)
        if path in self.files:
            del self.files[path]
        elif path in self.symlinks:
            del self.symlinks[path]
        else:
            raise NetStorageNotFoundError(f"{path} not found", status_code=404)
        return OperationStatus(code=200)

    async def delete_directory(self, path: str, options=None):
        await self._io("rmdir", path)
        norm = self._norm(path)
        if norm not in self.dirs:
            raise NetStorageNotFoundError(f"{path} not found", status_code=404)
        self.dirs.discard(norm)
        return OperationStatus(code=200)

    async def file_exists(self, path: str) -> bool:
        return path in self.files or self._is_dir(path)

    async def is_file(self, path: str) -> bool:
        return path in self.files

    async def inspect_remote_path(self, path: str, kind: str = "any") -> RemotePathInfo:
        if path in self.files:
            return RemotePathInfo(file=self._file_meta(path))
        if self._is_dir(path):
            return RemotePathInfo(du=await self.disk_usage(path))
        return RemotePathInfo()

    async def get_directory_info(self, path: str) -> DirectoryInfo:
        usage = await self.disk_usage(path)
        return DirectoryInfo(True, usage.files == 0, usage.files, usage.bytes, path)

    # -- assertions helpers --------------------------------------------------

    def calls_for(self, method: str) -> list[str]:
        return [path for m, path in self.calls if m == method]


def make_local_tree(root: Path, files: dict[str, bytes]) -> Path:
    """Create files below ``root`` from a {relative_path: content} mapping."""
    root.mkdir(parents=True, exist_ok=True)
    for relative_path, content in files.items():
        path = root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def fake_client() -> FakeNetStorageClient:
    """Empty in-memory NetStorage."""
    return FakeNetStorageClient()


@pytest.fixture
def sample_remote() -> FakeNetStorageClient:
    """Remote tree: a.txt (10), nested/b.txt (20), nested/inner/c.txt (5)."""
    client = FakeNetStorageClient()
    client.add_file("/data/a.txt", b"x" * 10)
    client.add_file("/data/nested/b.txt", b"y" * 20)
    client.add_file("/data/nested/inner/c.txt", b"z" * 5)
    return client


def read_tree(root: Path) -> dict[str, bytes]:
    """Read all files below ``root`` into a {relative_path: content} mapping."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def remote_contents(client: FakeNetStorageClient, root: str) -> dict[str, bytes]:
    prefix = root.rstrip("/") + "/"
    return {
        path[len(prefix) :]: content
        for path, (content, _) in client.files.items()
        if path.startswith(prefix)
    }


def optional_file(client: FakeNetStorageClient, path: str) -> Optional[NetStorageFile]:
    return client._file_meta(path) if path in client.files else None
