"""Conversation session: ordered turn history and the assistant exchange."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

from logic.safety import FALLBACK_REPLY
from models.conversation import ConversationHistory, ConversationTurn
from tools.assistant_client import AssistantClient
from wardrobe_app.config import DEFAULT_GEMINI_MODEL
from wardrobe_app.errors import CollaboratorFailure, InvalidInput
from wardrobe_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)
EMPTY_WARDROBE_MARKER = "(empty)"


@dataclass(frozen=True)
class ConversationSession:
    """Immutable view of one conversation.

    ``history`` always starts with the system turn given at creation. Asking
    returns a new session with turns appended; existing turns never change.
    """

    history: ConversationHistory
    model: str = DEFAULT_GEMINI_MODEL

    @property
    def system_turn(self) -> ConversationTurn:
        return self.history[0]

    @property
    def last_turn(self) -> ConversationTurn:
        return self.history[-1]

    def append(self, *turns: ConversationTurn) -> "ConversationSession":
        return ConversationSession(history=self.history + tuple(turns), model=self.model)


def create(system_prompt: str, model: str = DEFAULT_GEMINI_MODEL) -> ConversationSession:
    """Start a session whose history holds only the system turn."""

    return ConversationSession(
        history=(ConversationTurn(role="system", content=system_prompt),),
        model=model,
    )


def augment_query(user_text: str, wardrobe_context: str) -> str:
    """Prefix a query with the wardrobe listing the assistant should draw from."""

    listing = wardrobe_context if wardrobe_context.strip() else EMPTY_WARDROBE_MARKER
    return f"Wardrobe items:\n{listing}\n\nRequest: {user_text}"


def build_request_turns(history: ConversationHistory, wardrobe_context: str) -> List[ConversationTurn]:
    """Copy ``history`` with only the final user turn augmented by the wardrobe."""

    if not history or history[-1].role != "user":
        raise ValueError("request history must end with a user turn")
    request = list(history[:-1])
    request.append(ConversationTurn(role="user", content=augment_query(history[-1].content, wardrobe_context)))
    return request


def ask(
    session: ConversationSession,
    user_text: str,
    wardrobe_context: str,
    assistant: AssistantClient,
) -> Tuple[ConversationSession, str]:
    """Send one query to the assistant and return the extended session.

    The history records the bare user text. Any collaborator failure is
    replaced by :data:`FALLBACK_REPLY` so the conversation stays usable.
    """

    if not user_text or not user_text.strip():
        raise InvalidInput("message must not be empty")

    with_user = session.append(ConversationTurn(role="user", content=user_text))
    request = build_request_turns(with_user.history, wardrobe_context)

    try:
        reply = assistant.complete(request, model=session.model)
        if not isinstance(reply, str) or not reply.strip():
            raise CollaboratorFailure("assistant returned an empty reply")
    except CollaboratorFailure as exc:
        log_event(
            LOGGER,
            logging.WARNING,
            "assistant_fallback",
            reason=str(exc),
            turn_count=len(with_user.history),
        )
        reply = FALLBACK_REPLY
    except Exception:
        # Unexpected client errors are absorbed too; keep the traceback.
        log_event(
            LOGGER,
            logging.ERROR,
            "assistant_fallback",
            reason="unexpected_error",
            turn_count=len(with_user.history),
            exc_info=True,
        )
        reply = FALLBACK_REPLY

    updated = with_user.append(ConversationTurn(role="assistant", content=reply))
    return updated, reply


__all__ = [
    "ConversationSession",
    "EMPTY_WARDROBE_MARKER",
    "ask",
    "augment_query",
    "build_request_turns",
    "create",
]
