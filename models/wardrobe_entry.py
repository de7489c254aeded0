"""Wardrobe entry data model and helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True)
class WardrobeEntry:
    """One garment photo in the wardrobe and the text describing it.

    ``entry_id`` is the generated blob name, so it is stable for the life of
    the entry and unique across the collection.
    """

    entry_id: str
    blob_ref: str
    description: str


# Insertion order is display order and context order.
WardrobeCollection = Tuple[WardrobeEntry, ...]


def normalise_description(description: str | None) -> str:
    """Trim a user supplied description; empty results are the caller's problem."""

    return (description or "").strip()


def entry_for_blob(blob_ref: str, description: str) -> WardrobeEntry:
    """Build the entry stored for ``blob_ref``."""

    return WardrobeEntry(entry_id=blob_ref, blob_ref=blob_ref, description=description)


def blob_refs(collection: Iterable[WardrobeEntry]) -> set[str]:
    return {entry.blob_ref for entry in collection}


__all__ = [
    "WardrobeCollection",
    "WardrobeEntry",
    "blob_refs",
    "entry_for_blob",
    "normalise_description",
]
