"""Error taxonomy shared by the wardrobe stores, repository and session."""

from __future__ import annotations

from typing import Any


class WardrobeError(Exception):
    """Base class for every failure raised by the wardrobe core."""


class StorageUnavailable(WardrobeError):
    """The blob directory could not be created or is not usable."""


class SourceUnreadable(WardrobeError):
    """The capability handed us a source file we cannot read."""


class CopyFailed(WardrobeError):
    """Writing a blob failed; ``blob_ref`` names any partial file left behind."""

    def __init__(self, message: str, blob_ref: str | None = None) -> None:
        super().__init__(message)
        self.blob_ref = blob_ref


class DeleteFailed(WardrobeError):
    """A blob exists but could not be removed."""


class NotFound(WardrobeError):
    """A blob or wardrobe entry does not exist."""


class CorruptMetadata(WardrobeError):
    """The metadata record file exists but cannot be parsed or validated."""


class WriteFailed(WardrobeError):
    """The metadata record file could not be written."""


class InvalidInput(WardrobeError):
    """Caller supplied an empty description or message."""


class PersistFailed(WardrobeError):
    """A repository mutation was rolled back because metadata could not be saved."""


class PartialDelete(WardrobeError):
    """Metadata no longer lists the entry but its blob could not be removed."""

    def __init__(self, message: str, entry: Any, blob_ref: str) -> None:
        super().__init__(message)
        self.entry = entry
        self.blob_ref = blob_ref


class CollaboratorFailure(WardrobeError):
    """The assistant collaborator timed out, failed or returned garbage."""


class Busy(WardrobeError):
    """Another operation is still in flight."""


__all__ = [
    "Busy",
    "CollaboratorFailure",
    "CopyFailed",
    "CorruptMetadata",
    "DeleteFailed",
    "InvalidInput",
    "NotFound",
    "PartialDelete",
    "PersistFailed",
    "SourceUnreadable",
    "StorageUnavailable",
    "WardrobeError",
    "WriteFailed",
]
