"""Conversation turn data model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class ConversationTurn:
    """Represents one conversational turn."""

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown conversation role {self.role!r}")

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


ConversationHistory = Tuple[ConversationTurn, ...]


__all__ = ["ConversationHistory", "ConversationTurn", "ROLES"]
