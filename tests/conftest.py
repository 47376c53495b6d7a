"""Pytest configuration and shared fixtures for study assistant tests."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

from studyai.config import Settings
from studyai.models import ChatMessage
from studyai.providers.base import GenerationBackend
from studyai.registry import ProviderConfig, ProviderName

Script = Union[str, BaseException, Callable[[str], Any]]


class FakeBackend(GenerationBackend):
    """Generation backend that replays scripted responses.

    Each call consumes the next script entry: a string is returned, an
    exception is raised, and a callable receives the prompt and returns
    the response (or an awaitable producing it). Once the script is
    exhausted the last entry is repeated.
    """

    def __init__(
        self,
        responses: Sequence[Script],
        supports_vision: bool = False,
        model: str = "fake-model",
        delay: float = 0.0,
    ):
        super().__init__(api_key="test-key", model=model)
        self.responses = list(responses)
        self.supports_vision = supports_vision
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.cancelled = 0
        self.closed = False

    async def complete_chat(
        self,
        messages: Sequence[ChatMessage],
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
    ) -> str:
        self._require_vision(images)
        prompt = messages[-1].content
        self.calls.append(
            {"messages": list(messages), "prompt": prompt, "images": images, "max_tokens": max_tokens}
        )
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        script = self.responses[index]

        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise

        if isinstance(script, BaseException):
            raise script
        if callable(script):
            result = script(prompt)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return script

    async def close(self) -> None:
        self.closed = True


def make_provider(
    name: str,
    responses: Sequence[Script],
    supports_vision: bool = False,
    timeout_seconds: float = 5.0,
    delay: float = 0.0,
) -> ProviderConfig:
    """Build a ProviderConfig around a FakeBackend."""
    return ProviderConfig(
        name=ProviderName(name),
        backend=FakeBackend(responses, supports_vision=supports_vision, delay=delay),
        timeout_seconds=timeout_seconds,
    )


def mcq_item(index: int, prefix: str = "Question") -> Dict[str, Any]:
    """A well-formed multiple choice record."""
    return {
        "question": f"{prefix} {index}?",
        "options": [f"A{index}", f"B{index}", f"C{index}", f"D{index}"],
        "correctAnswer": f"A{index}",
        "explanation": f"Because {index}.",
        "type": "mcq",
    }


def mcq_payload(start: int, count: int, prefix: str = "Question") -> str:
    """A JSON array of ``count`` distinct multiple choice records."""
    return json.dumps([mcq_item(i, prefix) for i in range(start, start + count)])


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        openai_api_key=None,
        deepseek_api_key=None,
        anthropic_api_key=None,
        google_api_key=None,
        env="test",
        log_level="DEBUG",
    )


@pytest.fixture
def sample_text() -> str:
    """Fixture providing sample study material."""
    return (
        "Photosynthesis converts light energy into chemical energy. "
        "It takes place in the chloroplasts of plant cells."
    )


@pytest.fixture
def sample_image() -> str:
    """Fixture providing a tiny base64 image payload."""
    return "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
