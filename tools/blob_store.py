"""Blob storage for garment photos."""
from __future__ import annotations

import os
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Callable, Set

from wardrobe_app.errors import (
    CopyFailed,
    DeleteFailed,
    NotFound,
    SourceUnreadable,
    StorageUnavailable,
)
from wardrobe_app.logging_config import get_logger

LOGGER = get_logger(__name__)
DEFAULT_SUFFIX = ".jpg"


class BlobStore:
    """Persistence interface for image blobs."""

    def ensure_ready(self) -> None:
        raise NotImplementedError

    def put(self, source_path: str | Path) -> str:
        raise NotImplementedError

    def delete(self, blob_ref: str) -> None:
        raise NotImplementedError

    def list(self) -> Set[str]:
        raise NotImplementedError

    def path_for(self, blob_ref: str) -> Path:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Flat directory of image files named by millisecond timestamps."""

    def __init__(
        self,
        base_dir: str | Path = "data/wardrobe/images",
        clock_ns: Callable[[], int] = time.time_ns,
    ) -> None:
        self.base_dir = Path(base_dir)
        self._clock_ns = clock_ns
        self._last_stamp = 0

    def ensure_ready(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create blob directory {self.base_dir}") from exc
        if not self.base_dir.is_dir():
            raise StorageUnavailable(f"Blob path {self.base_dir} is not a directory")

    def path_for(self, blob_ref: str) -> Path:
        if not blob_ref or blob_ref in {".", ".."} or "/" in blob_ref or os.sep in blob_ref:
            raise NotFound(f"Invalid blob reference {blob_ref!r}")
        return self.base_dir / blob_ref

    def _next_stamp(self) -> int:
        stamp = max(self._clock_ns() // 1_000_000, self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    def _next_name(self, suffix: str) -> str:
        name = f"{self._next_stamp()}{suffix}"
        while (self.base_dir / name).exists():
            name = f"{self._next_stamp()}{suffix}"
        return name

    @staticmethod
    def _suffix_for(source: Path) -> str:
        return source.suffix.lower() or DEFAULT_SUFFIX

    def _open_exclusive(self, suffix: str) -> tuple[str, BinaryIO]:
        while True:
            name = self._next_name(suffix)
            try:
                return name, open(self.base_dir / name, "xb")
            except FileExistsError:
                continue
            except OSError as exc:
                raise CopyFailed(f"Cannot create blob in {self.base_dir}") from exc

    def put(self, source_path: str | Path) -> str:
        source = Path(source_path)
        if not source.is_file():
            raise SourceUnreadable(f"Source {source} is not a readable file")
        try:
            reader = open(source, "rb")
        except OSError as exc:
            raise SourceUnreadable(f"Cannot open source {source}") from exc

        with reader:
            blob_ref, writer = self._open_exclusive(self._suffix_for(source))
            try:
                with writer:
                    shutil.copyfileobj(reader, writer)
                    writer.flush()
                    os.fsync(writer.fileno())
            except OSError as exc:
                raise CopyFailed(f"Copy into blob {blob_ref} failed", blob_ref=blob_ref) from exc

        LOGGER.debug("Stored blob", extra={"blob_ref": blob_ref})
        return blob_ref

    def delete(self, blob_ref: str) -> None:
        path = self.path_for(blob_ref)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFound(f"Blob {blob_ref} does not exist") from exc
        except OSError as exc:
            raise DeleteFailed(f"Cannot delete blob {blob_ref}") from exc

    def list(self) -> Set[str]:
        if not self.base_dir.is_dir():
            return set()
        return {path.name for path in self.base_dir.iterdir() if path.is_file()}


__all__ = ["BlobStore", "LocalBlobStore"]
