"""Assistant collaborators that turn a list of turns into one reply."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple, Union

import google.generativeai as genai
import requests
from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, Field, ValidationError

from models.conversation import ConversationTurn
from tools.observability import instrument_operation
from wardrobe_app.config import WardrobeConfig
from wardrobe_app.errors import CollaboratorFailure

LOGGER = logging.getLogger(__name__)


class _ChatMessage(BaseModel):
    role: str = "assistant"
    content: str


class _ChatChoice(BaseModel):
    message: _ChatMessage


class _ChatCompletionResponse(BaseModel):
    choices: List[_ChatChoice] = Field(min_length=1)


class AssistantClient(ABC):
    """Black-box request/response exchange with a language model."""

    @abstractmethod
    def complete(self, turns: Sequence[ConversationTurn], model: str) -> str:
        """Return the assistant's reply or raise :class:`CollaboratorFailure`."""


class GeminiAssistantClient(AssistantClient):
    """Gemini backend using ``google-generativeai``.

    The leading system turn becomes the model's system instruction; the rest
    map onto Gemini's ``user``/``model`` contents.
    """

    def __init__(self, api_key: str | None = None, timeout_seconds: float = 30.0) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        if api_key:
            genai.configure(api_key=api_key)

    @staticmethod
    def _split_turns(turns: Sequence[ConversationTurn]) -> Tuple[Optional[str], List[Dict[str, object]]]:
        system_text: Optional[str] = None
        contents: List[Dict[str, object]] = []
        for turn in turns:
            if turn.role == "system":
                system_text = turn.content if system_text is None else f"{system_text}\n{turn.content}"
                continue
            role = "model" if turn.role == "assistant" else "user"
            contents.append({"role": role, "parts": [turn.content]})
        return system_text, contents

    @instrument_operation("assistant.gemini", expected_errors=(CollaboratorFailure,))
    def complete(self, turns: Sequence[ConversationTurn], model: str) -> str:
        if not self.api_key:
            raise CollaboratorFailure("missing_api_key")

        system_text, contents = self._split_turns(turns)
        try:
            generative_model = genai.GenerativeModel(model_name=model, system_instruction=system_text)
            response = generative_model.generate_content(
                contents, request_options={"timeout": self.timeout_seconds}
            )
            text = response.text
        except google_exceptions.GoogleAPIError as exc:
            raise CollaboratorFailure(f"gemini request failed: {type(exc).__name__}") from exc
        except (TimeoutError, ValueError) as exc:
            # ``response.text`` raises ValueError when the reply was blocked or empty.
            raise CollaboratorFailure(f"gemini returned no usable text: {type(exc).__name__}") from exc
        return text.strip()


class ChatCompletionsClient(AssistantClient):
    """OpenAI-compatible ``/chat/completions`` backend over ``requests``."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    @instrument_operation("assistant.chat_completions", expected_errors=(CollaboratorFailure,))
    def complete(self, turns: Sequence[ConversationTurn], model: str) -> str:
        if not self.api_key:
            raise CollaboratorFailure("missing_api_key")

        payload = {"model": model, "messages": [turn.as_message() for turn in turns]}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/chat/completions"

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
            parsed = _ChatCompletionResponse.model_validate(response.json())
        except requests.RequestException as exc:
            raise CollaboratorFailure(f"chat completion request failed: {type(exc).__name__}") from exc
        except (ValueError, ValidationError) as exc:
            raise CollaboratorFailure("chat completion response was malformed") from exc
        return parsed.choices[0].message.content.strip()


ScriptItem = Union[str, BaseException]


class MockAssistantClient(AssistantClient):
    """Scripted assistant for tests and offline runs.

    Each call consumes the next script item: strings are returned, exceptions
    raised. Once the script runs out ``default_reply`` is returned.
    """

    def __init__(
        self,
        script: Sequence[ScriptItem] | None = None,
        default_reply: str = "Try pairing your favourite top with something neutral.",
    ) -> None:
        self.script: List[ScriptItem] = list(script or [])
        self.default_reply = default_reply
        self.requests: List[Tuple[List[ConversationTurn], str]] = []

    def complete(self, turns: Sequence[ConversationTurn], model: str) -> str:
        self.requests.append((list(turns), model))
        if not self.script:
            return self.default_reply
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def build_assistant_client(config: WardrobeConfig) -> AssistantClient:
    """Pick the assistant backend named in the config."""

    backend = config.assistant_backend.lower()
    if backend == "openai":
        return ChatCompletionsClient(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout_seconds=config.assistant_timeout_seconds,
        )
    if backend == "mock":
        return MockAssistantClient()
    if backend == "gemini":
        return GeminiAssistantClient(api_key=config.api_key, timeout_seconds=config.assistant_timeout_seconds)
    raise ValueError(f"Unknown assistant backend {config.assistant_backend!r}")


__all__ = [
    "AssistantClient",
    "ChatCompletionsClient",
    "GeminiAssistantClient",
    "MockAssistantClient",
    "build_assistant_client",
]
