"""Conversation session tests: history ordering, context injection and fallbacks."""

from __future__ import annotations

import pytest
import requests

from logic.safety import FALLBACK_REPLY
from memory import conversation_session
from memory.conversation_session import EMPTY_WARDROBE_MARKER, augment_query, build_request_turns
from models.conversation import ConversationTurn
from tools.assistant_client import MockAssistantClient
from wardrobe_app.errors import CollaboratorFailure, InvalidInput

SYSTEM_PROMPT = "You are a personal wardrobe stylist."
WARDROBE = "red shirt\nblue jeans"


@pytest.fixture()
def session() -> conversation_session.ConversationSession:
    return conversation_session.create(SYSTEM_PROMPT, model="test-model")


def test_create_starts_with_system_turn(session) -> None:
    assert session.history == (ConversationTurn(role="system", content=SYSTEM_PROMPT),)
    assert session.model == "test-model"


def test_ask_records_bare_user_text_and_reply(session) -> None:
    assistant = MockAssistantClient(["Wear the red shirt with the blue jeans."])

    updated, reply = conversation_session.ask(session, "suggest an outfit", WARDROBE, assistant)

    assert reply == "Wear the red shirt with the blue jeans."
    assert [turn.role for turn in updated.history] == ["system", "user", "assistant"]
    assert updated.history[1].content == "suggest an outfit"
    assert updated.last_turn.content == reply


def test_request_augments_only_final_user_turn(session) -> None:
    assistant = MockAssistantClient(["first answer", "second answer"])
    session, _ = conversation_session.ask(session, "what goes with jeans?", WARDROBE, assistant)
    conversation_session.ask(session, "and for a wedding?", WARDROBE, assistant)

    turns, model = assistant.requests[-1]
    assert model == "test-model"
    assert turns[0] == ConversationTurn(role="system", content=SYSTEM_PROMPT)
    assert turns[1] == ConversationTurn(role="user", content="what goes with jeans?")
    assert turns[2] == ConversationTurn(role="assistant", content="first answer")
    assert turns[3].role == "user"
    assert turns[3].content == augment_query("and for a wedding?", WARDROBE)
    assert "red shirt\nblue jeans" in turns[3].content
    assert turns[3].content.endswith("and for a wedding?")


def test_input_session_is_not_mutated(session) -> None:
    before = session.history
    conversation_session.ask(session, "suggest an outfit", WARDROBE, MockAssistantClient())
    assert session.history == before


@pytest.mark.parametrize("text", ["", "   ", "\n"])
def test_blank_message_is_rejected(session, text: str) -> None:
    assistant = MockAssistantClient()
    with pytest.raises(InvalidInput):
        conversation_session.ask(session, text, WARDROBE, assistant)
    assert assistant.requests == []


@pytest.mark.parametrize(
    "failure",
    [
        CollaboratorFailure("timeout"),
        requests.ConnectionError("connection reset"),
        RuntimeError("client bug"),
        "",
    ],
)
def test_collaborator_failure_becomes_fallback_turn(session, failure) -> None:
    """Timeouts, transport errors and empty replies never escape ask()."""

    assistant = MockAssistantClient([failure])

    updated, reply = conversation_session.ask(session, "suggest an outfit", WARDROBE, assistant)

    assert reply == FALLBACK_REPLY
    assert updated.last_turn == ConversationTurn(role="assistant", content=FALLBACK_REPLY)
    assert updated.history[-2] == ConversationTurn(role="user", content="suggest an outfit")


def test_conversation_continues_after_fallback(session) -> None:
    assistant = MockAssistantClient([CollaboratorFailure("timeout"), "Try the jeans."])
    session, _ = conversation_session.ask(session, "first", WARDROBE, assistant)
    session, reply = conversation_session.ask(session, "second", WARDROBE, assistant)

    assert reply == "Try the jeans."
    assert [turn.role for turn in session.history] == ["system", "user", "assistant", "user", "assistant"]


def test_empty_wardrobe_is_marked_in_request() -> None:
    assert augment_query("help", "") == f"Wardrobe items:\n{EMPTY_WARDROBE_MARKER}\n\nRequest: help"


def test_build_request_turns_requires_trailing_user_turn(session) -> None:
    with pytest.raises(ValueError):
        build_request_turns(session.history, WARDROBE)


def test_unknown_role_is_rejected() -> None:
    with pytest.raises(ValueError):
        ConversationTurn(role="tool", content="x")
