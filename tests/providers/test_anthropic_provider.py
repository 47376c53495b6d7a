"""Tests for the Anthropic backend."""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import anthropic
import httpx
import pytest

from studyai.error_classifier import ErrorCategory
from studyai.errors import ProviderCallError
from studyai.models import ChatMessage
from studyai.providers.anthropic_provider import AnthropicProvider


def _text_block(text):
    block = Mock()
    block.type = "text"
    block.text = text
    return block


@pytest.fixture
def mock_async_anthropic():
    with patch("studyai.providers.anthropic_provider.AsyncAnthropic") as mock_class:
        client = MagicMock()
        client.messages.create = AsyncMock()
        client.close = AsyncMock()
        mock_class.return_value = client
        yield mock_class, client


class TestBuildRequest:
    """Tests for the messages payload builder."""

    def test_system_prompt_split_out(self):
        system, chat = AnthropicProvider._build_request(
            [
                ChatMessage(role="system", content="Be brief."),
                ChatMessage(role="user", content="hi"),
                ChatMessage(role="assistant", content="hello"),
            ],
            None,
        )
        assert system == "Be brief."
        assert chat == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    def test_no_system_prompt(self):
        system, _ = AnthropicProvider._build_request(
            [ChatMessage(role="user", content="hi")], None
        )
        assert system is None

    def test_images_precede_text(self):
        _, chat = AnthropicProvider._build_request(
            [ChatMessage(role="user", content="look")],
            ["data:image/jpeg;base64,xyz", "abc"],
        )
        blocks = chat[0]["content"]
        assert blocks[0] == {
            "type": "image",
            "source": {"type": "base64", "media_type": "image/jpeg", "data": "xyz"},
        }
        assert blocks[1]["source"]["media_type"] == "image/png"
        assert blocks[1]["source"]["data"] == "abc"
        assert blocks[2] == {"type": "text", "text": "look"}


class TestAnthropicProvider:
    """Test suite for AnthropicProvider."""

    def test_initialization(self, mock_async_anthropic):
        mock_class, _ = mock_async_anthropic

        provider = AnthropicProvider(api_key="sk-ant")

        assert provider.supports_vision is True
        assert provider.get_provider_name() == "anthropic"
        mock_class.assert_called_once_with(api_key="sk-ant")

    @pytest.mark.asyncio
    async def test_complete_chat_passes_system(self, mock_async_anthropic):
        _, client = mock_async_anthropic
        response = Mock()
        response.content = [_text_block("Part one. "), _text_block("Part two.")]
        client.messages.create.return_value = response

        provider = AnthropicProvider(api_key="sk-ant", model="claude-test")
        result = await provider.complete_chat(
            [
                ChatMessage(role="system", content="Tutor"),
                ChatMessage(role="user", content="Explain"),
            ],
            max_tokens=512,
        )

        assert result == "Part one. Part two."
        client.messages.create.assert_awaited_once_with(
            model="claude-test",
            messages=[{"role": "user", "content": "Explain"}],
            max_tokens=512,
            system="Tutor",
        )

    @pytest.mark.asyncio
    async def test_empty_content(self, mock_async_anthropic):
        _, client = mock_async_anthropic
        response = Mock()
        response.content = []
        client.messages.create.return_value = response

        provider = AnthropicProvider(api_key="sk-ant")
        assert await provider.complete_text("Explain") == ""

    @pytest.mark.asyncio
    async def test_sdk_error_is_classified(self, mock_async_anthropic):
        _, client = mock_async_anthropic
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        provider = AnthropicProvider(api_key="sk-ant")
        with pytest.raises(ProviderCallError) as exc_info:
            await provider.complete_text("Explain")

        assert exc_info.value.provider_name == "anthropic"
        assert exc_info.value.classified_error.category == ErrorCategory.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_close(self, mock_async_anthropic):
        _, client = mock_async_anthropic
        provider = AnthropicProvider(api_key="sk-ant")
        await provider.close()
        client.close.assert_awaited_once()
