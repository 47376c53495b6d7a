"""Exception hierarchy for the generation orchestration layer."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence

from .error_classifier import ClassifiedError

if TYPE_CHECKING:
    from .models import GeneratedQuestion


class StudyAIError(Exception):
    """Base class for all orchestration errors."""


class ConfigurationError(StudyAIError):
    """No generation provider is configured. Fatal, never retried."""


class InvalidRequestError(StudyAIError):
    """Caller input was rejected before any provider was contacted."""


class ProviderCallError(StudyAIError):
    """A backend call failed (network, timeout, backend-side error).

    Attributes:
        provider_name: Provider that failed
        classified_error: The classified error with category and severity
        original_exception: The SDK exception, if any
    """

    def __init__(
        self,
        provider_name: str,
        classified_error: ClassifiedError,
        original_exception: Optional[BaseException] = None,
    ):
        self.provider_name = provider_name
        self.classified_error = classified_error
        self.original_exception = original_exception
        super().__init__(str(classified_error))


class MalformedResponseError(StudyAIError):
    """The backend answered but the payload could not be parsed."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class QuestionValidationError(StudyAIError):
    """A single generated item could not be repaired into a valid question."""


class ValidationExhaustedError(StudyAIError):
    """The batch/retry bound was reached without enough valid questions.

    Attributes:
        partial: Whatever valid questions were produced (empty for a hard failure)
        target_count: The number of questions requested
    """

    def __init__(
        self,
        message: str,
        partial: Sequence["GeneratedQuestion"] = (),
        target_count: int = 0,
    ):
        self.partial = list(partial)
        self.target_count = target_count
        super().__init__(message)


@dataclass
class ProviderAttempt:
    """One failed provider attempt recorded during a fallback run."""

    provider_name: str
    error: BaseException

    def describe(self) -> str:
        return f"{self.provider_name}: {self.error}"


class AllProvidersFailedError(StudyAIError):
    """Every configured provider failed for an operation.

    The message lists each provider and its failure in attempt order.
    """

    def __init__(self, operation_name: str, attempts: List[ProviderAttempt]):
        self.operation_name = operation_name
        self.attempts = list(attempts)
        details = "; ".join(a.describe() for a in self.attempts)
        super().__init__(
            f"All providers failed for {operation_name}. Errors: {details}"
        )
