"""Durable object storage backends for job markers and results."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cb_common.errors import StorageError, wrap_error

logger = logging.getLogger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return exc.__class__.__name__


class ObjectStore(Protocol):
    """Minimal key/value contract the job state tracker relies on."""

    def put(self, key: str, body: bytes, content_type: str = "application/octet-stream") -> None: ...

    def get(self, key: str) -> Optional[bytes]: ...

    def exists(self, key: str) -> bool: ...

    def list_keys(self, prefix: str) -> Iterator[str]: ...


class S3ObjectStore:
    """Object store backed by an S3 bucket."""

    def __init__(self, bucket: str, client: Any = None, region: Optional[str] = None) -> None:
        self.bucket = bucket
        self._client = client or boto3.client("s3", region_name=region)

    def put(self, key: str, body: bytes, content_type: str = "application/octet-stream") -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket, Key=key, Body=body, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as exc:
            raise wrap_error(
                StorageError,
                f"Failed to write s3://{self.bucket}/{key}",
                context={"bucket": self.bucket, "key": key},
                cause=exc,
            )

    def get(self, key: str) -> Optional[bytes]:
        """Return the object body, or None when the key does not exist."""
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            if _error_code(exc) in _MISSING_CODES:
                return None
            raise wrap_error(
                StorageError,
                f"Failed to read s3://{self.bucket}/{key}",
                context={"bucket": self.bucket, "key": key},
                cause=exc,
            )
        return response["Body"].read()

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            raise wrap_error(
                StorageError,
                f"Failed to probe s3://{self.bucket}/{key}",
                context={"bucket": self.bucket, "key": key},
                cause=exc,
            )
        return True

    def list_keys(self, prefix: str) -> Iterator[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (BotoCoreError, ClientError) as exc:
            raise wrap_error(
                StorageError,
                f"Failed to list s3://{self.bucket}/{prefix}",
                context={"bucket": self.bucket, "prefix": prefix},
                cause=exc,
            )


class LocalObjectStore:
    """Object store backed by a directory tree; keys map to relative paths."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Key escapes store root: {key}", context={"key": key})
        return path

    def put(self, key: str, body: bytes, content_type: str = "application/octet-stream") -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_bytes(body)
            tmp.replace(path)
        except OSError as exc:
            raise wrap_error(StorageError, f"Failed to write {key}", context={"key": key}, cause=exc)

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def list_keys(self, prefix: str) -> Iterator[str]:
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.name.endswith(".tmp"):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                yield key
