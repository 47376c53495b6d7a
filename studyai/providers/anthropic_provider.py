"""Anthropic generation backend."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anthropic
from anthropic import AsyncAnthropic

from ..models import ChatMessage
from .base import GenerationBackend, split_data_url

logger = logging.getLogger(__name__)


class AnthropicProvider(GenerationBackend):
    """Anthropic messages API backend with image input support."""

    supports_vision = True

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-5-20250929"):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model to use (default: claude-sonnet-4-5-20250929)
        """
        super().__init__(api_key, model)
        self.async_client = AsyncAnthropic(api_key=api_key)

    @staticmethod
    def _build_request(
        messages: Sequence[ChatMessage], images: Optional[List[str]]
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """Split out the system prompt and build Anthropic message blocks.

        Anthropic takes the system prompt as a separate parameter and expects
        images as base64 blocks ahead of the text of the last user turn.
        """
        system_parts = [m.content for m in messages if m.role == "system"]
        chat: List[Dict[str, Any]] = [
            {"role": m.role, "content": m.content}
            for m in messages
            if m.role != "system"
        ]

        if images:
            for entry in reversed(chat):
                if entry["role"] == "user":
                    blocks: List[Dict[str, Any]] = []
                    for img in images:
                        media_type, data = split_data_url(img)
                        blocks.append(
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": data,
                                },
                            }
                        )
                    blocks.append({"type": "text", "text": entry["content"]})
                    entry["content"] = blocks
                    break

        system = "\n\n".join(system_parts) if system_parts else None
        return system, chat

    async def complete_chat(
        self,
        messages: Sequence[ChatMessage],
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a completion using the Anthropic messages API.

        Args:
            messages: Conversation messages
            images: Optional base64 images / data URLs
            max_tokens: Maximum tokens to generate (required by Anthropic)

        Returns:
            The generated text completion

        Raises:
            ProviderCallError: If the API call fails
        """
        system, chat = self._build_request(messages, images)
        kwargs: Dict[str, Any] = {}
        if system:
            kwargs["system"] = system

        try:
            response = await self.async_client.messages.create(
                model=self.model,
                messages=chat,
                max_tokens=max_tokens,
                **kwargs,
            )
        except anthropic.AnthropicError as e:
            raise self._handle_api_error(e)

        text_blocks = [
            block.text for block in response.content or [] if getattr(block, "type", "") == "text"
        ]
        if not text_blocks:
            logger.warning("Anthropic API returned empty response")
            return ""
        return "".join(text_blocks)

    async def close(self) -> None:
        """Close the async client's connection pool."""
        await self.async_client.close()
