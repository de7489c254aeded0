"""Assistant client tests with the network layers monkeypatched out."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
import requests
from google.api_core import exceptions as google_exceptions

from models.conversation import ConversationTurn
from tools import assistant_client as assistant_client_module
from tools.assistant_client import (
    ChatCompletionsClient,
    GeminiAssistantClient,
    MockAssistantClient,
    build_assistant_client,
)
from wardrobe_app.config import WardrobeConfig
from wardrobe_app.errors import CollaboratorFailure

TURNS = [
    ConversationTurn(role="system", content="You are a stylist."),
    ConversationTurn(role="user", content="hi"),
    ConversationTurn(role="assistant", content="hello"),
    ConversationTurn(role="user", content="Wardrobe items:\nred shirt\n\nRequest: outfit?"),
]


class _FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, json_error: bool = False) -> None:
        self._payload = payload
        self.status_code = status_code
        self._json_error = json_error

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if self._json_error:
            raise ValueError("not json")
        return self._payload


class _FakeGeminiResponse:
    def __init__(self, text: str | None) -> None:
        self._text = text

    @property
    def text(self) -> str:
        if self._text is None:
            raise ValueError("response was blocked")
        return self._text


@pytest.fixture()
def gemini(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    calls: List[Dict[str, Any]] = []
    outcomes: List[Any] = []

    class _FakeModel:
        def __init__(self, model_name: str, system_instruction: str | None = None) -> None:
            calls.append({"model_name": model_name, "system_instruction": system_instruction})

        def generate_content(self, contents, request_options=None):
            calls[-1].update({"contents": contents, "request_options": request_options})
            outcome = outcomes.pop(0) if outcomes else _FakeGeminiResponse("Wear the red shirt.")
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

    monkeypatch.setattr(assistant_client_module.genai, "configure", lambda **_: None)
    monkeypatch.setattr(assistant_client_module.genai, "GenerativeModel", _FakeModel)
    return SimpleNamespace(calls=calls, outcomes=outcomes)


def test_gemini_maps_turns_and_system_instruction(gemini) -> None:
    client = GeminiAssistantClient(api_key="test-key", timeout_seconds=7)

    reply = client.complete(TURNS, model="gemini-1.5-flash")

    assert reply == "Wear the red shirt."
    call = gemini.calls[0]
    assert call["model_name"] == "gemini-1.5-flash"
    assert call["system_instruction"] == "You are a stylist."
    assert [content["role"] for content in call["contents"]] == ["user", "model", "user"]
    assert call["contents"][-1]["parts"] == [TURNS[-1].content]
    assert call["request_options"] == {"timeout": 7}


def test_gemini_without_api_key_fails_fast(gemini) -> None:
    with pytest.raises(CollaboratorFailure):
        GeminiAssistantClient(api_key=None).complete(TURNS, model="gemini-1.5-flash")
    assert gemini.calls == []


@pytest.mark.parametrize(
    "outcome",
    [
        google_exceptions.DeadlineExceeded("too slow"),
        google_exceptions.ServiceUnavailable("down"),
        _FakeGeminiResponse(None),
    ],
)
def test_gemini_failures_become_collaborator_failures(gemini, outcome) -> None:
    gemini.outcomes.append(outcome)
    with pytest.raises(CollaboratorFailure):
        GeminiAssistantClient(api_key="test-key").complete(TURNS, model="gemini-1.5-flash")


def test_chat_completions_posts_messages(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: Dict[str, Any] = {}

    def _fake_post(url, json=None, headers=None, timeout=None):
        captured.update({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return _FakeResponse({"choices": [{"message": {"role": "assistant", "content": " Try the scarf. "}}]})

    monkeypatch.setattr(assistant_client_module.requests, "post", _fake_post)
    client = ChatCompletionsClient(api_key="sk-test", base_url="https://llm.local/v1/", timeout_seconds=3)

    reply = client.complete(TURNS, model="gpt-4o-mini")

    assert reply == "Try the scarf."
    assert captured["url"] == "https://llm.local/v1/chat/completions"
    assert captured["json"]["model"] == "gpt-4o-mini"
    assert captured["json"]["messages"] == [turn.as_message() for turn in TURNS]
    assert captured["headers"] == {"Authorization": "Bearer sk-test"}
    assert captured["timeout"] == 3


@pytest.mark.parametrize(
    "response_or_error",
    [
        requests.Timeout("timed out"),
        requests.ConnectionError("refused"),
        _FakeResponse({"error": "rate limited"}, status_code=429),
        _FakeResponse(json_error=True),
        _FakeResponse({"choices": []}),
        _FakeResponse({"choices": [{"message": {"content": None}}]}),
    ],
)
def test_chat_completions_failures(monkeypatch: pytest.MonkeyPatch, response_or_error) -> None:
    def _fake_post(*_args, **_kwargs):
        if isinstance(response_or_error, BaseException):
            raise response_or_error
        return response_or_error

    monkeypatch.setattr(assistant_client_module.requests, "post", _fake_post)

    with pytest.raises(CollaboratorFailure):
        ChatCompletionsClient(api_key="sk-test").complete(TURNS, model="gpt-4o-mini")


def test_chat_completions_without_key_fails_fast() -> None:
    with pytest.raises(CollaboratorFailure):
        ChatCompletionsClient(api_key=None).complete(TURNS, model="gpt-4o-mini")


def test_mock_client_replays_script_then_default() -> None:
    client = MockAssistantClient(["one", CollaboratorFailure("boom")], default_reply="fallback")

    assert client.complete(TURNS, model="m") == "one"
    with pytest.raises(CollaboratorFailure):
        client.complete(TURNS, model="m")
    assert client.complete(TURNS, model="m") == "fallback"
    assert len(client.requests) == 3


@pytest.mark.parametrize(
    "backend, expected",
    [
        ("gemini", GeminiAssistantClient),
        ("openai", ChatCompletionsClient),
        ("mock", MockAssistantClient),
    ],
)
def test_build_assistant_client_picks_backend(backend: str, expected: type) -> None:
    config = WardrobeConfig(assistant_backend=backend)
    assert isinstance(build_assistant_client(config), expected)


def test_build_assistant_client_rejects_unknown_backend() -> None:
    with pytest.raises(ValueError):
        build_assistant_client(WardrobeConfig(assistant_backend="carrier-pigeon"))
