"""Wardrobe repository keeping blobs and metadata in step."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from models.wardrobe_entry import (
    WardrobeCollection,
    WardrobeEntry,
    blob_refs,
    entry_for_blob,
    normalise_description,
)
from tools.blob_store import BlobStore
from tools.metadata_store import MetadataStore
from tools.observability import instrument_operation
from wardrobe_app.errors import (
    CopyFailed,
    CorruptMetadata,
    DeleteFailed,
    InvalidInput,
    NotFound,
    PartialDelete,
    PersistFailed,
    SourceUnreadable,
    WriteFailed,
)
from wardrobe_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ConsistencyReport:
    """Differences between the blob directory and the metadata record."""

    orphan_blobs: Tuple[str, ...] = ()
    dangling_entries: Tuple[WardrobeEntry, ...] = ()

    @property
    def consistent(self) -> bool:
        return not self.orphan_blobs and not self.dangling_entries


@dataclass
class RepairResult:
    """What a repair pass removed and what it could not."""

    deleted_blobs: List[str] = field(default_factory=list)
    dropped_entries: List[WardrobeEntry] = field(default_factory=list)
    failed_blobs: List[str] = field(default_factory=list)


class WardrobeRepository:
    """Single source of truth for the wardrobe collection.

    Every mutation goes through here. ``add`` writes the blob before the
    metadata and rolls the blob back if the metadata cannot be saved.
    ``delete`` saves metadata before removing the blob, so a crash between the
    two leaves an orphan blob rather than an entry pointing at nothing.
    """

    def __init__(self, blob_store: BlobStore, metadata_store: MetadataStore) -> None:
        self.blob_store = blob_store
        self.metadata_store = metadata_store
        self._entries: List[WardrobeEntry] = []
        self._initialized = False

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("WardrobeRepository.initialize() must be called first")

    @instrument_operation("wardrobe.initialize")
    def initialize(self) -> None:
        self.blob_store.ensure_ready()
        self._entries = list(self.metadata_store.load())
        self._initialized = True

        report = self.check_consistency()
        if not report.consistent:
            log_event(
                LOGGER,
                logging.WARNING,
                "wardrobe_inconsistent",
                orphan_blobs=list(report.orphan_blobs),
                dangling_refs=[entry.blob_ref for entry in report.dangling_entries],
            )

    def list(self) -> WardrobeCollection:
        self._require_initialized()
        return tuple(self._entries)

    def get(self, entry_id: str) -> WardrobeEntry:
        self._require_initialized()
        for entry in self._entries:
            if entry.entry_id == entry_id:
                return entry
        raise NotFound(f"No wardrobe entry {entry_id}")

    def path_for(self, entry: WardrobeEntry) -> Path:
        return self.blob_store.path_for(entry.blob_ref)

    def _discard_blob(self, blob_ref: str) -> bool:
        """Remove a blob written by a failed add; return False if it survived."""

        try:
            self.blob_store.delete(blob_ref)
        except NotFound:
            return True
        except DeleteFailed:
            log_event(
                LOGGER,
                logging.ERROR,
                "wardrobe_rollback_blob_left",
                blob_ref=blob_ref,
                exc_info=True,
            )
            return False
        return True

    @instrument_operation("wardrobe.add", expected_errors=(InvalidInput, SourceUnreadable))
    def add(self, source_path: str | Path, description: str) -> WardrobeEntry:
        self._require_initialized()
        text = normalise_description(description)
        if not text:
            raise InvalidInput("description must not be empty")

        try:
            blob_ref = self.blob_store.put(source_path)
        except CopyFailed as exc:
            if exc.blob_ref:
                self._discard_blob(exc.blob_ref)
            raise

        entry = entry_for_blob(blob_ref, text)
        self._entries.append(entry)
        try:
            self.metadata_store.save(self._entries)
        except WriteFailed as exc:
            self._entries.remove(entry)
            self._discard_blob(blob_ref)
            raise PersistFailed(f"Could not record wardrobe entry {blob_ref}") from exc

        log_event(LOGGER, logging.INFO, "wardrobe_entry_added", entry_id=entry.entry_id, count=len(self._entries))
        return entry

    @instrument_operation("wardrobe.delete", expected_errors=(NotFound,))
    def delete(self, entry_id: str) -> WardrobeEntry:
        entry = self.get(entry_id)
        position = self._entries.index(entry)

        del self._entries[position]
        try:
            self.metadata_store.save(self._entries)
        except WriteFailed as exc:
            self._entries.insert(position, entry)
            raise PersistFailed(f"Could not remove wardrobe entry {entry_id}") from exc

        try:
            self.blob_store.delete(entry.blob_ref)
        except NotFound:
            log_event(LOGGER, logging.WARNING, "wardrobe_blob_already_missing", blob_ref=entry.blob_ref)
        except DeleteFailed as exc:
            raise PartialDelete(
                f"Entry {entry_id} deleted but blob {entry.blob_ref} remains",
                entry=entry,
                blob_ref=entry.blob_ref,
            ) from exc

        log_event(LOGGER, logging.INFO, "wardrobe_entry_deleted", entry_id=entry_id, count=len(self._entries))
        return entry

    def check_consistency(self) -> ConsistencyReport:
        self._require_initialized()
        on_disk = self.blob_store.list()
        referenced = blob_refs(self._entries)
        return ConsistencyReport(
            orphan_blobs=tuple(sorted(on_disk - referenced)),
            dangling_entries=tuple(entry for entry in self._entries if entry.blob_ref not in on_disk),
        )

    @instrument_operation("wardrobe.repair")
    def repair(self, drop_dangling: bool = False) -> RepairResult:
        """Delete orphan blobs and, when asked, drop entries whose blob is gone."""

        report = self.check_consistency()
        result = RepairResult()

        for blob_ref in report.orphan_blobs:
            if self._discard_blob(blob_ref):
                result.deleted_blobs.append(blob_ref)
            else:
                result.failed_blobs.append(blob_ref)

        if drop_dangling and report.dangling_entries:
            dangling = set(report.dangling_entries)
            remaining = [entry for entry in self._entries if entry not in dangling]
            try:
                self.metadata_store.save(remaining)
            except WriteFailed as exc:
                raise PersistFailed("Could not drop dangling wardrobe entries") from exc
            self._entries = remaining
            result.dropped_entries.extend(report.dangling_entries)

        log_event(
            LOGGER,
            logging.INFO,
            "wardrobe_repaired",
            deleted_blobs=len(result.deleted_blobs),
            dropped_entries=len(result.dropped_entries),
            failed_blobs=len(result.failed_blobs),
        )
        return result

    @instrument_operation("wardrobe.reset_corrupt_metadata", expected_errors=(InvalidInput,))
    def reset_corrupt_metadata(self) -> Optional[Path]:
        """Set a corrupt metadata file aside and start from an empty collection.

        Only a file that fails to load is moved; a readable one raises
        ``InvalidInput`` and is left untouched. Blobs are left in place; they
        show up as orphans afterwards.
        """

        try:
            self.metadata_store.load()
        except CorruptMetadata as exc:
            log_event(LOGGER, logging.WARNING, "metadata_reset_confirmed", reason=str(exc))
        else:
            raise InvalidInput("Metadata file is readable; there is nothing to reset")

        quarantined = self.metadata_store.quarantine()
        self._entries = []
        self._initialized = False
        self.initialize()
        return quarantined


__all__ = ["ConsistencyReport", "RepairResult", "WardrobeRepository"]
