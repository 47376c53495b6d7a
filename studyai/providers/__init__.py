"""Generation backend integrations."""

from .anthropic_provider import AnthropicProvider
from .base import GenerationBackend
from .deepseek_provider import DeepSeekProvider
from .google_provider import GoogleProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "GenerationBackend",
    "OpenAIProvider",
    "DeepSeekProvider",
    "AnthropicProvider",
    "GoogleProvider",
]
