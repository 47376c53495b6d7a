"""Sequential provider fallback.

One attempt per provider, in registry order; the first success wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterator, List, Sequence, TypeVar

from .errors import (
    AllProvidersFailedError,
    ConfigurationError,
    ProviderAttempt,
    ProviderCallError,
)
from .registry import ProviderConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[ProviderConfig], Awaitable[T]]


@dataclass
class FallbackResult(Generic[T]):
    """Result of a fallback run.

    Unpacks as ``(result, provider)``; ``attempts`` holds the failures that
    happened before the winning provider.
    """

    result: T
    provider: str
    attempts: List[ProviderAttempt] = field(default_factory=list)

    def __iter__(self) -> Iterator:
        return iter((self.result, self.provider))


class FallbackExecutor:
    """Runs an async operation against providers until one succeeds."""

    async def run(
        self,
        providers: Sequence[ProviderConfig],
        operation: "Operation[T]",
        operation_name: str = "operation",
    ) -> FallbackResult[T]:
        """Run ``operation`` against each provider in order.

        Args:
            providers: Ordered providers (primary first)
            operation: Async callable receiving a provider
            operation_name: Name used in logs and the aggregate error

        Returns:
            FallbackResult with the first successful result

        Raises:
            ConfigurationError: If no providers are configured
            AllProvidersFailedError: If every provider failed
        """
        if not providers:
            raise ConfigurationError(
                "No AI providers are configured. Please check API keys."
            )

        attempts: List[ProviderAttempt] = []
        for index, provider in enumerate(providers):
            provider_name = provider.name.value
            if index > 0:
                logger.info(
                    f"Attempting fallback to {provider_name} for {operation_name}",
                    extra={"provider": provider_name, "operation": operation_name},
                )
            try:
                result = await operation(provider)
            except ConfigurationError:
                raise
            except Exception as e:
                category = (
                    e.classified_error.category.value
                    if isinstance(e, ProviderCallError)
                    else type(e).__name__
                )
                logger.warning(
                    f"{operation_name} failed with provider {provider_name} "
                    f"({category}): {e}",
                    extra={"provider": provider_name, "operation": operation_name},
                )
                attempts.append(ProviderAttempt(provider_name=provider_name, error=e))
                continue

            if attempts:
                logger.info(
                    f"{operation_name} succeeded with {provider_name} after "
                    f"{len(attempts)} failed provider(s)",
                    extra={"provider": provider_name, "operation": operation_name},
                )
            return FallbackResult(result=result, provider=provider_name, attempts=attempts)

        error = AllProvidersFailedError(operation_name, attempts)
        logger.error(str(error), extra={"operation": operation_name})
        raise error
