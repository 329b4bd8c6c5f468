"""Object storage collaborators."""

from __future__ import annotations

import errno
import os
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

import requests

from persona_studio.core.errors import StorageError, StorageErrorKind
from persona_studio.core.logging import get_logger

logger = get_logger(__name__)


class ObjectStore(Protocol):
    """Bucketed blob storage returning public retrieval URLs."""

    def put(self, bucket: str, path: str, data: bytes, overwrite: bool = True) -> str: ...

    def delete(self, bucket: str, path: str) -> None: ...

    def public_url(self, bucket: str, path: str) -> str: ...

    def read(self, url: str) -> bytes: ...


class LocalObjectStore:
    """Filesystem object store: one directory per bucket under ``root``.

    Buckets are not created implicitly; writing into a missing bucket raises
    a ``not_found`` storage error the same way a hosted store would.
    """

    def __init__(self, root: Path, public_base_url: str, timeout: float = 60.0) -> None:
        self.root = root.expanduser()
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout

    def create_bucket(self, bucket: str) -> Path:
        bucket_dir = self._bucket_dir(bucket)
        bucket_dir.mkdir(parents=True, exist_ok=True)
        return bucket_dir

    def put(self, bucket: str, path: str, data: bytes, overwrite: bool = True) -> str:
        bucket_dir = self._bucket_dir(bucket)
        if not bucket_dir.is_dir():
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Bucket not found: {bucket}")
        target = self._object_path(bucket, path)
        if target.exists() and not overwrite:
            raise StorageError(StorageErrorKind.OTHER, f"The resource already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise _translate(exc) from exc
        logger.debug("Stored %s bytes at %s/%s", len(data), bucket, path)
        return self.public_url(bucket, path)

    def delete(self, bucket: str, path: str) -> None:
        target = self._object_path(bucket, path)
        try:
            target.unlink()
        except FileNotFoundError as exc:
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Object not found: {path}") from exc
        except OSError as exc:
            raise _translate(exc) from exc

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/storage/{quote(bucket)}/{quote(path)}"

    def open(self, bucket: str, path: str) -> Path:
        """Resolve a stored object on disk for serving."""
        target = self._object_path(bucket, path)
        if not target.is_file():
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Object not found: {path}")
        return target

    def read(self, url: str) -> bytes:
        """Fetch an object by URL; local URLs short-circuit to the filesystem."""
        prefix = f"{self.public_base_url}/storage/"
        if url.startswith(prefix):
            bucket, _, path = url[len(prefix) :].partition("/")
            target = self.open(unquote(bucket), unquote(path))
            try:
                return target.read_bytes()
            except OSError as exc:
                raise _translate(exc) from exc
        try:
            resp = requests.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageError(StorageErrorKind.OTHER, str(exc)) from exc
        if resp.status_code == 404:
            raise StorageError(StorageErrorKind.NOT_FOUND, f"Object not found: {url}")
        if resp.status_code in (401, 403):
            raise StorageError(StorageErrorKind.PERMISSION, f"permission denied: {url}")
        if not resp.ok:
            raise StorageError(StorageErrorKind.OTHER, f"Download failed ({resp.status_code}): {url}")
        return resp.content

    def _bucket_dir(self, bucket: str) -> Path:
        return self.root / bucket

    def _object_path(self, bucket: str, path: str) -> Path:
        bucket_dir = self._bucket_dir(bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir != target and bucket_dir not in target.parents:
            raise StorageError(StorageErrorKind.PERMISSION, f"Path escapes bucket: {path}")
        return target


def _translate(exc: OSError) -> StorageError:
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM, errno.EROFS):
        return StorageError(StorageErrorKind.PERMISSION, f"permission denied: {os.strerror(exc.errno or errno.EACCES)}")
    if isinstance(exc, FileNotFoundError):
        return StorageError(StorageErrorKind.NOT_FOUND, str(exc))
    return StorageError(StorageErrorKind.OTHER, str(exc))


__all__ = ["ObjectStore", "LocalObjectStore"]
