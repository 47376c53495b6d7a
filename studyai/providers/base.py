"""Base class for generation backends."""

import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from ..error_classifier import ErrorClassifier
from ..errors import ProviderCallError
from ..models import ChatMessage

DEFAULT_IMAGE_MIME_TYPE = "image/png"

_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def to_data_url(image: str) -> str:
    """Return the image as a data URL, treating bare strings as base64 PNG."""
    if image.startswith("data:"):
        return image
    return f"data:{DEFAULT_IMAGE_MIME_TYPE};base64,{image}"


def split_data_url(image: str) -> Tuple[str, str]:
    """Split an image into (mime_type, base64_payload).

    Bare base64 strings are assumed to be PNG.
    """
    match = _DATA_URL_PATTERN.match(image)
    if match:
        return match.group("mime"), match.group("data")
    return DEFAULT_IMAGE_MIME_TYPE, image


class GenerationBackend(ABC):
    """Abstract base class for text (and optionally vision) generation backends.

    Adapters translate a list of chat messages plus optional image
    attachments into their SDK's native request shape.
    """

    supports_vision: bool = False

    def __init__(self, api_key: str, model: str):
        """
        Initialize the backend.

        Args:
            api_key: API key for the provider
            model: Model identifier to use
        """
        self.api_key = api_key
        self.model = model

    @abstractmethod
    async def complete_chat(
        self,
        messages: Sequence[ChatMessage],
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
    ) -> str:
        """
        Generate a completion for a conversation.

        Images, when given, are attached to the last user message.

        Args:
            messages: Conversation so far (system/user/assistant)
            images: Base64 strings or data URLs
            max_tokens: Response token budget

        Returns:
            The generated text (may be empty)

        Raises:
            ProviderCallError: If the API call fails
        """

    async def complete_text(
        self,
        prompt: str,
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
    ) -> str:
        """Generate a completion for a single user prompt."""
        return await self.complete_chat(
            [ChatMessage(role="user", content=prompt)],
            images=images,
            max_tokens=max_tokens,
        )

    def get_provider_name(self) -> str:
        """
        Get the name of this provider.

        Returns:
            Provider name (e.g., "openai", "anthropic", "google")
        """
        return self.__class__.__name__.replace("Provider", "").lower()

    def _require_vision(self, images: Optional[List[str]]) -> None:
        if images and not self.supports_vision:
            raise ProviderCallError(
                provider_name=self.get_provider_name(),
                classified_error=ErrorClassifier.unsupported_input(
                    self.get_provider_name(),
                    f"Model {self.model} does not accept image input",
                ),
            )

    def _handle_api_error(self, error: BaseException) -> ProviderCallError:
        """Classify and wrap an API error.

        Args:
            error: The exception that was raised

        Returns:
            ProviderCallError with classified error
        """
        classified = ErrorClassifier.classify_error(
            error=error,
            provider=self.get_provider_name(),
        )
        return ProviderCallError(
            provider_name=self.get_provider_name(),
            classified_error=classified,
            original_exception=error,
        )

    async def close(self) -> None:
        """Release SDK resources. Adapters with async clients override this."""
