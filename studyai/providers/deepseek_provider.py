"""DeepSeek generation backend.

DeepSeek exposes an OpenAI-compatible API, so this provider reuses the
OpenAI SDK with a different base URL.
"""

import logging

from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

DEEPSEEK_BASE_URL = "https://api.deepseek.com"


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek chat/reasoner backend. Text only."""

    supports_vision = False

    def __init__(
        self,
        api_key: str,
        model: str = "deepseek-chat",
        base_url: str = DEEPSEEK_BASE_URL,
    ):
        """
        Initialize DeepSeek provider.

        Args:
            api_key: DeepSeek API key
            model: Model identifier (e.g., "deepseek-chat", "deepseek-reasoner")
            base_url: API base URL
        """
        super().__init__(api_key=api_key, model=model, base_url=base_url)
        logger.debug(f"Initialized DeepSeek provider with model {model}")
