"""Provider registry.

Resolves, per request, the ordered list of usable generation providers from
an explicit set of credentials.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .config import Settings
from .error_classifier import ErrorClassifier
from .errors import ProviderCallError
from .models import ChatMessage
from .providers.anthropic_provider import AnthropicProvider
from .providers.base import GenerationBackend
from .providers.deepseek_provider import DeepSeekProvider
from .providers.google_provider import GoogleProvider
from .providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Supported generation providers."""

    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class Credentials(BaseModel):
    """API keys available for one request."""

    model_config = ConfigDict(frozen=True)

    openai_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    @classmethod
    def from_settings(cls, config: Settings) -> "Credentials":
        """Snapshot the keys currently held in settings."""
        return cls(
            openai_api_key=config.openai_api_key,
            deepseek_api_key=config.deepseek_api_key,
            anthropic_api_key=config.anthropic_api_key,
            google_api_key=config.google_api_key,
        )

    def key_for(self, provider: ProviderName) -> Optional[str]:
        key = getattr(self, f"{provider.value}_api_key")
        if key is None or not key.strip():
            return None
        return key.strip()


@dataclass(frozen=True)
class ProviderConfig:
    """A configured provider: identity, backend and call deadline."""

    name: ProviderName
    backend: GenerationBackend
    timeout_seconds: float

    @property
    def model(self) -> str:
        return self.backend.model

    @property
    def supports_vision(self) -> bool:
        return self.backend.supports_vision

    async def complete_chat(
        self,
        messages: Sequence[ChatMessage],
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
        timeout: Optional[float] = None,
    ) -> str:
        """Run a chat completion bounded by a timeout.

        Raises:
            ProviderCallError: On backend failure or timeout
        """
        effective_timeout = timeout if timeout is not None else self.timeout_seconds
        try:
            return await asyncio.wait_for(
                self.backend.complete_chat(
                    messages, images=images or None, max_tokens=max_tokens
                ),
                timeout=effective_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"{self.name.value} call timed out after {effective_timeout:g}s",
                extra={"provider": self.name.value},
            )
            raise ProviderCallError(
                provider_name=self.name.value,
                classified_error=ErrorClassifier.timeout(
                    self.name.value, seconds=effective_timeout
                ),
                original_exception=e,
            ) from e

    async def complete_text(
        self,
        prompt: str,
        images: Optional[List[str]] = None,
        max_tokens: int = 4096,
        timeout: Optional[float] = None,
    ) -> str:
        """Run a single-prompt completion bounded by a timeout."""
        return await self.complete_chat(
            [ChatMessage(role="user", content=prompt)],
            images=images,
            max_tokens=max_tokens,
            timeout=timeout,
        )


class ProviderRegistry:
    """Builds the ordered provider list for a request."""

    def __init__(self, credentials: Credentials, config: Settings):
        """
        Args:
            credentials: Keys available for this request
            config: Settings supplying models, base URLs, order and timeouts
        """
        self.credentials = credentials
        self.config = config

    def resolve(self, reasoning: bool = False) -> List[ProviderConfig]:
        """Return configured providers, primary first.

        Args:
            reasoning: Prefer each provider's reasoning model when configured

        Returns:
            Ordered provider configs; empty when no key is configured
        """
        providers: List[ProviderConfig] = []
        for raw_name in self.config.provider_order_list:
            name = ProviderName(raw_name)
            api_key = self.credentials.key_for(name)
            if not api_key:
                continue
            backend = self._build_backend(name, api_key, reasoning)
            providers.append(
                ProviderConfig(
                    name=name,
                    backend=backend,
                    timeout_seconds=self.config.default_timeout_seconds,
                )
            )

        if providers:
            logger.debug(
                "Resolved providers: "
                + ", ".join(f"{p.name.value}({p.model})" for p in providers)
            )
        else:
            logger.warning("No generation providers configured")
        return providers

    def _build_backend(
        self, name: ProviderName, api_key: str, reasoning: bool
    ) -> GenerationBackend:
        if name == ProviderName.DEEPSEEK:
            model = self.config.deepseek_model
            if reasoning and self.config.deepseek_reasoning_model:
                model = self.config.deepseek_reasoning_model
            return DeepSeekProvider(
                api_key=api_key, model=model, base_url=self.config.deepseek_base_url
            )
        if name == ProviderName.OPENAI:
            return OpenAIProvider(api_key=api_key, model=self.config.openai_model)
        if name == ProviderName.ANTHROPIC:
            return AnthropicProvider(api_key=api_key, model=self.config.anthropic_model)
        return GoogleProvider(api_key=api_key, model=self.config.google_model)
