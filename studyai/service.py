"""Study assistant operations.

Each entry point validates its input, resolves the providers configured for
the request, and runs the operation through the fallback executor.
"""

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import ValidationError

from .config import Settings, settings
from .error_classifier import ErrorClassifier
from .errors import (
    ConfigurationError,
    InvalidRequestError,
    MalformedResponseError,
    ProviderCallError,
)
from .fallback import FallbackExecutor
from .image_analysis import ImageDescriber
from .models import (
    ChatMessage,
    ConversationMessage,
    ExplanationLevel,
    GenerationRequest,
    QuestionType,
    SummaryComplexity,
)
from .orchestrator import BatchOrchestrator
from .prompts import (
    TEXT_EXTRACTION_SYSTEM_PROMPT,
    TEXT_EXTRACTION_USER_PROMPT,
    append_image_analysis,
    build_explanation_prompt,
    build_follow_up_system_prompt,
    build_study_plan_prompt,
    build_summary_prompt,
)
from .registry import Credentials, ProviderConfig, ProviderRegistry
from .schemas import (
    ExplanationResponse,
    FollowUpResponse,
    QuestionsResponse,
    StudyPlanResponse,
    SummaryResponse,
    TextExtractionResponse,
)
from .text_utils import clean_text_response

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

DEFAULT_STUDY_DAYS = 7
DEFAULT_STUDY_HOURS = 2

MAX_EXTRACTION_IMAGES = 5
# Length of the base64 string, as sent by clients
MAX_EXTRACTION_IMAGE_SIZE = 10 * 1024 * 1024


def _parse_choice(enum_cls: Type[E], value: Any, default: E) -> E:
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug(f"Unknown {enum_cls.__name__} {value!r}; using {default.value}")
        return default


def _positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _clean_images(images: Optional[Iterable[Any]]) -> List[str]:
    if not images:
        return []
    return [image.strip() for image in images if isinstance(image, str) and image.strip()]


def parse_question_types(types: Optional[Sequence[Any]]) -> List[QuestionType]:
    """Keep the recognized types in order; default to multiple choice."""
    parsed: List[QuestionType] = []
    for raw in types or []:
        try:
            question_type = QuestionType(raw)
        except ValueError:
            logger.debug(f"Ignoring unknown question type {raw!r}")
            continue
        if question_type not in parsed:
            parsed.append(question_type)
    return parsed or [QuestionType.MULTIPLE_CHOICE]


class StudyAssistantService:
    """Entry points for summaries, questions, explanations, plans and chat."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        credentials: Optional[Credentials] = None,
        executor: Optional[FallbackExecutor] = None,
    ):
        """
        Args:
            config: Settings to use (defaults to the global settings)
            credentials: Fixed credentials; resolved from settings per request
                when omitted
            executor: Fallback executor (a default one is created when omitted)
        """
        self.config = config or settings
        self.credentials = credentials
        self.executor = executor or FallbackExecutor()

    def resolve_providers(self, reasoning: bool = False) -> List[ProviderConfig]:
        """Resolve the providers configured for one request."""
        credentials = self.credentials or Credentials.from_settings(self.config)
        return ProviderRegistry(credentials, self.config).resolve(reasoning=reasoning)

    def resolve_count(self, count: Any) -> int:
        """Clamp a requested question count to ``1..question_max_count``."""
        if not _positive_number(count):
            return self.config.question_default_count
        return min(int(count), self.config.question_max_count) or 1

    def _describer(self, providers: Sequence[ProviderConfig]) -> ImageDescriber:
        return ImageDescriber(providers, max_tokens=self.config.max_tokens)

    @staticmethod
    async def _images_for(
        provider: ProviderConfig,
        images: List[str],
        has_text: bool,
        describer: ImageDescriber,
    ) -> Tuple[List[str], List[str]]:
        """Decide how ``provider`` receives the request images.

        Returns:
            ``(attached, descriptions)``: vision providers get the images
            attached; text-only providers get descriptions produced by a
            vision provider instead

        Raises:
            ProviderCallError: If a text-only provider would be left with
                neither text nor image descriptions
        """
        if not images or provider.supports_vision:
            return images, []

        descriptions = await describer.describe(images)
        if descriptions:
            logger.info(
                f"{provider.name.value} does not support images; "
                f"using {len(descriptions)} image description(s)",
                extra={"provider": provider.name.value},
            )
            return [], descriptions
        if has_text:
            logger.warning(
                f"{provider.name.value} does not support images and no image "
                f"description is available; continuing with text only",
                extra={"provider": provider.name.value},
            )
            return [], []
        raise ProviderCallError(
            provider_name=provider.name.value,
            classified_error=ErrorClassifier.unsupported_input(
                provider.name.value,
                f"{provider.model} cannot read images and no text was supplied",
            ),
        )

    async def _run(
        self,
        providers: List[ProviderConfig],
        operation,
        operation_name: str,
        candidates: Optional[List[ProviderConfig]] = None,
    ):
        """Run ``operation`` over ``candidates`` (all providers by default).

        Every resolved backend is closed afterwards.
        """
        try:
            return await self.executor.run(
                providers if candidates is None else candidates,
                operation,
                operation_name,
            )
        finally:
            await self._close(providers)

    @staticmethod
    async def _close(providers: Sequence[ProviderConfig]) -> None:
        for provider in providers:
            try:
                await provider.backend.close()
            except Exception as e:
                logger.warning(f"Failed to close {provider.name.value} client: {e}")

    async def summarize(
        self,
        text: Optional[str],
        complexity: Union[SummaryComplexity, str, None] = None,
        count: Optional[int] = None,
        images: Optional[List[str]] = None,
    ) -> SummaryResponse:
        """Summarize text and/or images.

        Raises:
            InvalidRequestError: If neither text nor images are supplied
            ConfigurationError: If no provider is configured
            AllProvidersFailedError: If every provider failed
        """
        text = (text or "").strip()
        images = _clean_images(images)
        if not text and not images:
            raise InvalidRequestError("Text or images required")

        level = _parse_choice(SummaryComplexity, complexity, SummaryComplexity.DETAILED)
        bullet_count = int(count) if _positive_number(count) else None

        providers = self.resolve_providers()
        describer = self._describer(providers)

        async def operation(provider: ProviderConfig):
            attached, descriptions = await self._images_for(
                provider, images, bool(text), describer
            )
            prompt = build_summary_prompt(
                append_image_analysis(text, descriptions),
                level,
                count=bullet_count,
                include_images=bool(attached),
            )
            raw = await provider.complete_text(
                prompt, images=attached, max_tokens=self.config.max_tokens
            )
            summary = clean_text_response(raw)
            if not summary:
                raise MalformedResponseError(f"{provider.name.value} returned an empty summary")
            return summary, bool(attached or descriptions)

        outcome = await self._run(providers, operation, "summarize")
        summary, vision_used = outcome.result
        return SummaryResponse(
            summary=summary, provider=outcome.provider, vision_used=vision_used
        )

    async def generate_questions(
        self,
        text: Optional[str],
        types: Optional[Sequence[Any]] = None,
        count: Optional[int] = None,
        images: Optional[List[str]] = None,
    ) -> QuestionsResponse:
        """Generate practice questions from text and/or images.

        Raises:
            InvalidRequestError: If neither text nor images are supplied
            ConfigurationError: If no provider is configured
            AllProvidersFailedError: If every provider failed
        """
        text = (text or "").strip()
        images = _clean_images(images)
        if not text and not images:
            raise InvalidRequestError("Text or images required")

        question_types = parse_question_types(types)
        target = self.resolve_count(count)
        orchestrator = BatchOrchestrator.from_settings(self.config)

        logger.info(
            f"Question request: types={[t.value for t in question_types]}, "
            f"count={target}, images={len(images)}",
            extra={"operation": "questions"},
        )

        providers = self.resolve_providers()
        describer = self._describer(providers)

        async def operation(provider: ProviderConfig):
            attached, descriptions = await self._images_for(
                provider, images, bool(text), describer
            )
            request = GenerationRequest(
                source_text=append_image_analysis(text, descriptions),
                images=attached,
                question_types=question_types,
                target_count=target,
            )
            return await orchestrator.generate(provider, request)

        questions, provider_name = await self._run(
            providers, operation, "question generation"
        )
        return QuestionsResponse(questions=questions, provider=provider_name)

    async def explain(
        self,
        concept: Optional[str],
        level: Union[ExplanationLevel, str, None] = None,
        images: Optional[List[str]] = None,
    ) -> ExplanationResponse:
        """Explain a concept, or the concept shown in the images.

        Uses each provider's reasoning model where one is configured.
        """
        concept = (concept or "").strip()
        images = _clean_images(images)
        if not concept and not images:
            raise InvalidRequestError("Concept or images required")

        explain_level = _parse_choice(
            ExplanationLevel, level, ExplanationLevel.INTERMEDIATE
        )

        providers = self.resolve_providers(reasoning=True)
        describer = self._describer(providers)

        async def operation(provider: ProviderConfig):
            attached, descriptions = await self._images_for(
                provider, images, bool(concept), describer
            )
            prompt = build_explanation_prompt(
                concept,
                explain_level,
                include_images=bool(attached),
                image_descriptions=descriptions,
            )
            raw = await provider.complete_text(
                prompt,
                images=attached,
                max_tokens=self.config.max_tokens,
                timeout=self.config.explanation_timeout_seconds,
            )
            explanation = clean_text_response(raw)
            if not explanation:
                raise MalformedResponseError(
                    f"{provider.name.value} returned an empty explanation"
                )
            return explanation, bool(attached or descriptions)

        outcome = await self._run(providers, operation, "explanation")
        explanation, vision_used = outcome.result
        return ExplanationResponse(
            explanation=explanation, provider=outcome.provider, vision_used=vision_used
        )

    async def create_study_plan(
        self,
        topics: Optional[Sequence[Any]],
        days_available: Optional[int] = None,
        hours_per_day: Optional[float] = None,
    ) -> StudyPlanResponse:
        """Build a day-by-day study plan (defaults: 7 days, 2 hours a day)."""
        cleaned_topics = [
            t.strip() for t in topics or [] if isinstance(t, str) and t.strip()
        ]
        if not cleaned_topics:
            raise InvalidRequestError("Topics array is required")

        days = int(days_available) if _positive_number(days_available) else DEFAULT_STUDY_DAYS
        days = max(days, 1)
        hours = hours_per_day if _positive_number(hours_per_day) else DEFAULT_STUDY_HOURS
        prompt = build_study_plan_prompt(cleaned_topics, days, hours)

        async def operation(provider: ProviderConfig):
            raw = await provider.complete_text(prompt, max_tokens=self.config.max_tokens)
            plan = clean_text_response(raw)
            if not plan:
                raise MalformedResponseError(f"{provider.name.value} returned an empty plan")
            return plan

        plan, provider_name = await self._run(
            self.resolve_providers(), operation, "study plan"
        )
        return StudyPlanResponse(plan=plan, provider=provider_name)

    async def follow_up(
        self,
        messages: Optional[Sequence[Union[ConversationMessage, dict]]],
        context: Optional[str] = None,
    ) -> FollowUpResponse:
        """Answer the latest turn of a follow-up conversation."""
        chat = [ChatMessage(role="system", content=build_follow_up_system_prompt(context))]
        for message in messages or []:
            if isinstance(message, dict):
                try:
                    message = ConversationMessage.model_validate(message)
                except ValidationError:
                    logger.debug(f"Skipping malformed conversation turn: {message!r}")
                    continue
            if not isinstance(message, ConversationMessage):
                continue
            if message.type in ("user", "assistant") and message.content:
                chat.append(ChatMessage(role=message.type, content=message.content))

        if len(chat) == 1:
            raise InvalidRequestError("Messages array is required")

        async def operation(provider: ProviderConfig):
            raw = await provider.complete_chat(
                chat, max_tokens=self.config.follow_up_max_tokens
            )
            response = raw.strip() if raw else ""
            if not response:
                raise MalformedResponseError(f"{provider.name.value} returned an empty reply")
            return response

        response, provider_name = await self._run(
            self.resolve_providers(), operation, "follow-up"
        )
        return FollowUpResponse(response=response, provider=provider_name)

    async def extract_text(self, images: Any) -> TextExtractionResponse:
        """Extract the text (Arabic, English or mixed) shown in the images.

        Only vision-capable providers take part in the fallback run.

        Raises:
            InvalidRequestError: If the images are missing, too many or too large
            ConfigurationError: If no vision-capable provider is configured
            AllProvidersFailedError: If every vision provider failed
        """
        if not isinstance(images, (list, tuple)):
            raise InvalidRequestError("Images array is required")
        if not images:
            raise InvalidRequestError("At least one image is required")
        if len(images) > MAX_EXTRACTION_IMAGES:
            raise InvalidRequestError(f"Maximum {MAX_EXTRACTION_IMAGES} images allowed")
        for index, image in enumerate(images):
            if not isinstance(image, str) or not image.strip():
                raise InvalidRequestError(f"Image at index {index} must be a base64 string")
            if len(image) > MAX_EXTRACTION_IMAGE_SIZE:
                raise InvalidRequestError(
                    f"Image at index {index} exceeds maximum size of 10MB"
                )
        images = [image.strip() for image in images]

        chat = [
            ChatMessage(role="system", content=TEXT_EXTRACTION_SYSTEM_PROMPT),
            ChatMessage(role="user", content=TEXT_EXTRACTION_USER_PROMPT),
        ]

        async def operation(provider: ProviderConfig):
            raw = await provider.complete_chat(
                chat, images=images, max_tokens=self.config.max_tokens
            )
            # A blank page legitimately yields no text
            return (raw or "").strip()

        providers = self.resolve_providers()
        vision_providers = [p for p in providers if p.supports_vision]
        if not vision_providers:
            await self._close(providers)
            raise ConfigurationError(
                "No vision-capable AI providers are configured. Please check API keys."
            )
        text, provider_name = await self._run(
            providers, operation, "text extraction", candidates=vision_providers
        )
        return TextExtractionResponse(text=text, success=True, provider=provider_name)
