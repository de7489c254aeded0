"""Deterministic projection of the wardrobe into assistant context."""

from __future__ import annotations

from typing import Iterable

from models.wardrobe_entry import WardrobeEntry


def build_context(collection: Iterable[WardrobeEntry]) -> str:
    """Join entry descriptions one per line, in collection order.

    An empty wardrobe yields an empty string.
    """

    return "\n".join(entry.description for entry in collection)


__all__ = ["build_context"]
