"""
Filesystem-backed object storage.

Objects live under <root>/<bucket>/<key>. Content type and object metadata
are kept beside each object in a <key>.meta.json sidecar so they survive
moves between the incoming, validated and quarantine prefixes.
"""

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".meta.json"


class StorageError(Exception):
    pass


class ObjectNotFoundError(StorageError):
    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"Object {key} not found in bucket {bucket}")
        self.bucket = bucket
        self.key = key


class StoredObject(BaseModel):
    key: str
    # open binary file handle; the reader closes it
    content: Any
    content_type: str = ""
    content_length: int = Field(default=0, ge=0)
    metadata: dict[str, str] = Field(default_factory=dict)


class IObjectStorage(Protocol):

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        ...

    async def move_object(
        self,
        bucket: str,
        source_key: str,
        dest_key: str,
        metadata: dict[str, str],
    ) -> None:
        ...


class LocalObjectStorage:

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _object_path(self, bucket: str, key: str) -> Path:
        # Keys may not contain empty, "." or ".." segments
        segments = key.split("/")
        if any(segment in ("", ".", "..") for segment in segments):
            raise StorageError(f"Invalid object key: {key}")
        bucket_dir = (self.root / bucket).resolve()
        path = (bucket_dir / key).resolve()
        if path.parent != bucket_dir.joinpath(*segments[:-1]):
            raise StorageError(f"Invalid object key: {key}")
        return path

    @staticmethod
    def _metadata_path(path: Path) -> Path:
        return path.with_name(path.name + METADATA_SUFFIX)

    async def get_object(self, bucket: str, key: str) -> StoredObject:
        path = self._object_path(bucket, key)

        def _open() -> StoredObject:
            if not path.is_file():
                raise ObjectNotFoundError(bucket, key)
            sidecar = self._read_sidecar(path)
            return StoredObject(
                key=key,
                content=open(path, "rb"),
                content_type=sidecar.get("content_type", ""),
                content_length=path.stat().st_size,
                metadata=sidecar.get("metadata", {}),
            )

        return await asyncio.to_thread(_open)

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        path = self._object_path(bucket, key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            self._write_sidecar(path, content_type, metadata or {})

        await asyncio.to_thread(_write)
        logger.info(f"Stored object {bucket}/{key} ({len(data)} bytes)")

    async def move_object(
        self,
        bucket: str,
        source_key: str,
        dest_key: str,
        metadata: dict[str, str],
    ) -> None:
        """Move an object, replacing its metadata. Content type is kept."""
        source = self._object_path(bucket, source_key)
        dest = self._object_path(bucket, dest_key)

        def _move() -> None:
            if not source.is_file():
                raise ObjectNotFoundError(bucket, source_key)
            content_type = self._read_sidecar(source).get("content_type", "")
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(dest))
            self._write_sidecar(dest, content_type, metadata)
            self._metadata_path(source).unlink(missing_ok=True)

        await asyncio.to_thread(_move)
        logger.info(f"Moved object {bucket}/{source_key} -> {dest_key}")

    def _read_sidecar(self, path: Path) -> dict:
        sidecar = self._metadata_path(path)
        if not sidecar.exists():
            return {}
        return json.loads(sidecar.read_text(encoding="utf-8"))

    def _write_sidecar(
        self,
        path: Path,
        content_type: str,
        metadata: dict[str, str],
    ) -> None:
        self._metadata_path(path).write_text(
            json.dumps({"content_type": content_type, "metadata": metadata}),
            encoding="utf-8",
        )
