"""Image descriptions for text-only backends.

A text-only backend cannot read attachments, so each image is first
described by a vision-capable provider and the descriptions are handed to
the text-only backend as part of its source text.
"""

import logging
from typing import List, Optional, Sequence

from .errors import ConfigurationError
from .prompts import IMAGE_DESCRIPTION_PROMPT
from .registry import ProviderConfig
from .text_utils import clean_text_response

logger = logging.getLogger(__name__)


class ImageDescriber:
    """Describes request images once, with the first vision provider that answers.

    Descriptions are computed lazily and cached, so every text-only provider
    tried during a fallback run reuses the same result.
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        max_tokens: int = 4096,
        prompt: str = IMAGE_DESCRIPTION_PROMPT,
    ):
        """
        Args:
            providers: Providers resolved for the request; only vision-capable
                ones are used
            max_tokens: Token budget per description
            prompt: Instruction sent with each image
        """
        self.providers = [p for p in providers if p.supports_vision]
        self.max_tokens = max_tokens
        self.prompt = prompt
        self._descriptions: Optional[List[str]] = None

    @property
    def available(self) -> bool:
        return bool(self.providers)

    async def describe(self, images: Sequence[str]) -> List[str]:
        """Return one description per image that some provider could describe.

        Images no provider could describe are skipped with a warning.
        """
        if self._descriptions is None:
            self._descriptions = await self._describe_all(images)
        return self._descriptions

    async def _describe_all(self, images: Sequence[str]) -> List[str]:
        descriptions: List[str] = []
        if not self.providers:
            return descriptions

        for index, image in enumerate(images):
            description = await self._describe_one(index, image)
            if description:
                descriptions.append(description)

        logger.info(
            f"Described {len(descriptions)}/{len(images)} image(s) for a text-only provider",
            extra={"operation": "image analysis"},
        )
        return descriptions

    async def _describe_one(self, index: int, image: str) -> str:
        for provider in self.providers:
            provider_name = provider.name.value
            try:
                raw = await provider.complete_text(
                    self.prompt, images=[image], max_tokens=self.max_tokens
                )
            except ConfigurationError:
                raise
            except Exception as e:
                logger.warning(
                    f"Image {index + 1} analysis failed with {provider_name}: {e}",
                    extra={"provider": provider_name, "operation": "image analysis"},
                )
                continue

            description = clean_text_response(raw)
            if description:
                return description
            logger.warning(
                f"Image {index + 1} analysis by {provider_name} returned nothing",
                extra={"provider": provider_name, "operation": "image analysis"},
            )

        logger.warning(f"Skipping image {index + 1}: no provider could describe it")
        return ""
