"""OpenAI generation backend."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from ..models import ChatMessage
from .base import GenerationBackend, to_data_url

logger = logging.getLogger(__name__)


def build_chat_messages(
    messages: Sequence[ChatMessage], images: Optional[List[str]] = None
) -> List[Dict[str, Any]]:
    """Convert messages to the chat-completions wire shape.

    Images become ``image_url`` parts (base64 data URLs) on the last user
    message.
    """
    payload: List[Dict[str, Any]] = [
        {"role": m.role, "content": m.content} for m in messages
    ]
    if not images:
        return payload

    for entry in reversed(payload):
        if entry["role"] == "user":
            parts: List[Dict[str, Any]] = [{"type": "text", "text": entry["content"]}]
            parts.extend(
                {"type": "image_url", "image_url": {"url": to_data_url(img)}}
                for img in images
            )
            entry["content"] = parts
            break
    return payload


class OpenAIProvider(GenerationBackend):
    """OpenAI chat-completions backend with image input support."""

    supports_vision = True

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4o)
            base_url: Optional API base URL for OpenAI-compatible services
            organization: Optional organization ID
        """
        super().__init__(api_key, model)
        self.async_client = AsyncOpenAI(
            api_key=api_key, base_url=base_url, organization=organization
        )

    async def complete_chat(
        self,
        messages: Sequence[ChatMessage],
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a chat completion.

        Args:
            messages: Conversation messages
            images: Optional base64 images / data URLs
            max_tokens: Maximum tokens to generate

        Returns:
            The generated text completion

        Raises:
            ProviderCallError: If the API call fails
        """
        self._require_vision(images)
        try:
            response = await self.async_client.chat.completions.create(
                model=self.model,
                messages=build_chat_messages(messages, images),
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise self._handle_api_error(e)

        if not response.choices:
            logger.warning(f"{self.get_provider_name()} returned no choices")
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        """Close the async client's connection pool."""
        await self.async_client.close()
