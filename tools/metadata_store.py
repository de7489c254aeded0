"""Metadata record file for the wardrobe collection."""
from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from logic.validation import METADATA_DOCUMENT, MetadataRecord
from models.wardrobe_entry import WardrobeCollection, WardrobeEntry, entry_for_blob
from wardrobe_app.errors import CorruptMetadata, WriteFailed
from wardrobe_app.logging_config import get_logger

LOGGER = get_logger(__name__)


class MetadataStore:
    """Persistence interface for the wardrobe metadata record."""

    def load(self) -> WardrobeCollection:
        raise NotImplementedError

    def save(self, collection: Iterable[WardrobeEntry]) -> None:
        raise NotImplementedError

    def quarantine(self) -> Optional[Path]:
        raise NotImplementedError


class JSONMetadataStore(MetadataStore):
    """Single JSON file holding a list of ``{blobRef, description}`` records.

    Saves go through a temporary file in the same directory followed by
    ``os.replace`` so readers only ever see the previous or the new document.
    """

    def __init__(self, path: str | Path = "data/wardrobe/wardrobe.json") -> None:
        self.path = Path(path)

    def load(self) -> WardrobeCollection:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ()
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptMetadata(f"Cannot read metadata file {self.path}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptMetadata(f"Metadata file {self.path} is not valid JSON") from exc

        try:
            records = METADATA_DOCUMENT.validate_python(payload)
        except ValidationError as exc:
            raise CorruptMetadata(f"Metadata file {self.path} has an unexpected shape") from exc

        seen: set[str] = set()
        entries = []
        for record in records:
            if record.blob_ref in seen:
                raise CorruptMetadata(f"Metadata file {self.path} lists blob {record.blob_ref} twice")
            seen.add(record.blob_ref)
            entries.append(entry_for_blob(record.blob_ref, record.description))
        return tuple(entries)

    @staticmethod
    def _serialise(collection: Iterable[WardrobeEntry]) -> str:
        records = [
            MetadataRecord(blob_ref=entry.blob_ref, description=entry.description).model_dump(by_alias=True)
            for entry in collection
        ]
        return json.dumps(records, indent=2, ensure_ascii=False)

    def save(self, collection: Iterable[WardrobeEntry]) -> None:
        document = self._serialise(collection)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
            raise WriteFailed(f"Cannot write metadata file {self.path}") from exc

    def quarantine(self) -> Optional[Path]:
        """Move the current record file aside, keeping it for inspection."""

        if not self.path.exists():
            return None
        target = self.path.with_name(f"{self.path.name}.corrupt-{int(time.time() * 1000)}")
        try:
            os.replace(self.path, target)
        except OSError as exc:
            raise WriteFailed(f"Cannot move metadata file {self.path} aside") from exc
        LOGGER.warning("Quarantined metadata file", extra={"quarantined_as": target.name})
        return target


__all__ = ["JSONMetadataStore", "MetadataStore"]
