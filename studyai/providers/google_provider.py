"""Google Generative AI (Gemini) generation backend."""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Sequence

import google.generativeai as genai
from google.generativeai.types import GenerationConfig

from ..error_classifier import ErrorClassifier
from ..errors import ProviderCallError
from ..models import ChatMessage
from .base import GenerationBackend, split_data_url

logger = logging.getLogger(__name__)


class GoogleProvider(GenerationBackend):
    """Gemini backend with image input support."""

    supports_vision = True

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash"):
        """
        Initialize Google provider.

        Args:
            api_key: Google API key
            model: Model to use (default: gemini-1.5-flash)
        """
        super().__init__(api_key, model)
        genai.configure(api_key=api_key)

    def _build_contents(
        self, messages: Sequence[ChatMessage], images: Optional[List[str]]
    ) -> List[Dict[str, Any]]:
        """Build Gemini ``contents``; assistant turns use the ``model`` role."""
        contents: List[Dict[str, Any]] = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [m.content],
            }
            for m in messages
            if m.role != "system"
        ]

        if images:
            for entry in reversed(contents):
                if entry["role"] == "user":
                    for img in images:
                        mime_type, data = split_data_url(img)
                        try:
                            raw = base64.b64decode(data, validate=True)
                        except (binascii.Error, ValueError) as e:
                            raise ProviderCallError(
                                provider_name=self.get_provider_name(),
                                classified_error=ErrorClassifier.unsupported_input(
                                    self.get_provider_name(),
                                    f"Image is not valid base64: {e}",
                                ),
                                original_exception=e,
                            ) from e
                        entry["parts"].append({"mime_type": mime_type, "data": raw})
                    break
        return contents

    async def complete_chat(
        self,
        messages: Sequence[ChatMessage],
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a completion using the Gemini API.

        Args:
            messages: Conversation messages
            images: Optional base64 images / data URLs
            max_tokens: Maximum tokens to generate

        Returns:
            The generated text completion

        Raises:
            ProviderCallError: If the API call fails
        """
        system_parts = [m.content for m in messages if m.role == "system"]
        contents = self._build_contents(messages, images)

        try:
            model = genai.GenerativeModel(
                self.model,
                system_instruction="\n\n".join(system_parts) if system_parts else None,
            )
            response = await model.generate_content_async(
                contents,
                generation_config=GenerationConfig(max_output_tokens=max_tokens),
            )
            # .text raises ValueError when the candidate was blocked
            return response.text or ""
        except ProviderCallError:
            raise
        except Exception as e:
            raise self._handle_api_error(e)
