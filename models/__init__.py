"""Model package exports."""

from models.conversation import ConversationHistory, ConversationTurn
from models.wardrobe_entry import WardrobeCollection, WardrobeEntry

__all__ = ["ConversationHistory", "ConversationTurn", "WardrobeCollection", "WardrobeEntry"]
