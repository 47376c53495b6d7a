"""Batch question generation against a single provider.

Splits a question request into sub-requests, merges and deduplicates what
comes back, and trims the result to the requested count.
"""

import asyncio
import logging
import math
from typing import List, Optional, Tuple

from .config import Settings
from .errors import MalformedResponseError, ValidationExhaustedError
from .models import BatchResult, GeneratedQuestion, GenerationRequest
from .normalizer import deduplicate_questions, normalize_questions, parse_questions
from .prompts import build_question_prompt
from .registry import ProviderConfig

logger = logging.getLogger(__name__)


def split_into_sub_batches(total: int, max_batch_size: int) -> List[int]:
    """Split ``total`` into chunks of at most ``max_batch_size`` (last one smaller).

    e.g. total=15, max_batch_size=8 -> [8, 7]
    """
    sizes: List[int] = []
    remaining = total
    while remaining > 0:
        chunk = min(remaining, max_batch_size)
        sizes.append(chunk)
        remaining -= chunk
    return sizes


class BatchOrchestrator:
    """Produces an exact, deduplicated set of questions from one provider.

    Two strategies are supported:

    - ``parallel``: over-fetch ``ceil(target * overfetch_ratio)`` questions in
      concurrent sub-batches, then dedupe and truncate.
    - ``sequential``: one call in flight, each asking for the remaining
      shortfall, up to ``max_attempts`` calls.
    """

    def __init__(
        self,
        strategy: str = "parallel",
        overfetch_ratio: float = 1.5,
        sub_batch_size: int = 8,
        max_attempts: int = 3,
        true_false_labels: Tuple[str, str] = ("صح", "خطأ"),
        max_tokens: int = 4096,
        timeout_seconds: Optional[float] = 60.0,
        max_count: int = 25,
    ):
        """Initialize the orchestrator.

        Args:
            strategy: "parallel" or "sequential"
            overfetch_ratio: Multiplier applied to the target in parallel mode
            sub_batch_size: Maximum questions requested per sub-batch
            max_attempts: Maximum calls in sequential mode
            true_false_labels: The fixed (true, false) option pair
            max_tokens: Response token budget per call
            timeout_seconds: Deadline per call (None uses the provider default)
            max_count: Upper bound on the questions generated per request
        """
        if strategy not in ("parallel", "sequential"):
            raise ValueError(f"Unknown batch strategy: {strategy}")
        self.strategy = strategy
        self.overfetch_ratio = overfetch_ratio
        self.sub_batch_size = sub_batch_size
        self.max_attempts = max_attempts
        self.true_false_labels = true_false_labels
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.max_count = max_count

    @classmethod
    def from_settings(cls, config: Settings) -> "BatchOrchestrator":
        return cls(
            strategy=config.question_batch_strategy,
            overfetch_ratio=config.question_overfetch_ratio,
            sub_batch_size=config.question_sub_batch_size,
            max_attempts=config.question_max_sequential_attempts,
            true_false_labels=config.true_false_labels,
            max_tokens=config.max_tokens,
            timeout_seconds=config.question_timeout_seconds,
            max_count=config.question_max_count,
        )

    async def generate(
        self, provider: ProviderConfig, request: GenerationRequest
    ) -> List[GeneratedQuestion]:
        """Generate ``request.target_count`` questions with one provider.

        Returns:
            Between 1 and ``target_count`` unique, valid questions. Fewer than
            the target is a soft degradation and is logged as a warning.

        Raises:
            ProviderCallError: If a backend call fails
            MalformedResponseError: If a parallel sub-batch cannot be parsed
            ValidationExhaustedError: If no valid question was produced
        """
        if request.target_count > self.max_count:
            logger.info(
                f"Clamping question count from {request.target_count} to {self.max_count}"
            )
            request = request.model_copy(update={"target_count": self.max_count})

        if self.strategy == "sequential":
            questions, calls = await self._generate_sequential(provider, request)
        else:
            questions, calls = await self._generate_parallel(provider, request)

        provider_name = provider.name.value
        target = request.target_count
        if not questions:
            raise ValidationExhaustedError(
                f"No valid questions generated by {provider_name} "
                f"after {calls} request(s)",
                partial=[],
                target_count=target,
            )
        if len(questions) < target:
            logger.warning(
                f"Only {len(questions)}/{target} unique questions generated by "
                f"{provider_name}; returning partial set",
                extra={"provider": provider_name, "operation": "questions"},
            )
        return questions

    async def _generate_parallel(
        self, provider: ProviderConfig, request: GenerationRequest
    ) -> Tuple[List[GeneratedQuestion], int]:
        target = request.target_count
        fetch_target = math.ceil(target * self.overfetch_ratio)
        sizes = split_into_sub_batches(fetch_target, self.sub_batch_size)

        logger.info(
            f"Over-fetching {fetch_target} questions ({self.overfetch_ratio:g}x of "
            f"{target}) from {provider.name.value} in {len(sizes)} sub-batches: {sizes}",
            extra={"provider": provider.name.value, "operation": "questions"},
        )

        tasks = [
            asyncio.create_task(
                self._generate_sub_batch(
                    provider,
                    request,
                    count=size,
                    batch_index=i,
                    include_images=request.has_images and i == 0,
                )
            )
            for i, size in enumerate(sizes)
        ]
        try:
            results: List[BatchResult] = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        # gather preserves task order, so this flattens in batch order
        fetched = [q for result in results for q in result.questions]
        unique = deduplicate_questions(fetched)
        final = unique[:target]
        logger.info(
            f"Result: {len(fetched)} fetched -> {len(unique)} unique -> "
            f"{len(final)} returned (target: {target})",
            extra={"provider": provider.name.value, "operation": "questions"},
        )
        return final, len(sizes)

    async def _generate_sequential(
        self, provider: ProviderConfig, request: GenerationRequest
    ) -> Tuple[List[GeneratedQuestion], int]:
        target = request.target_count
        collected: List[GeneratedQuestion] = []
        calls = 0

        for attempt in range(self.max_attempts):
            if len(collected) >= target:
                break
            calls += 1
            try:
                result = await self._generate_sub_batch(
                    provider,
                    request,
                    count=target,
                    batch_index=attempt,
                    include_images=request.has_images,
                    existing_count=len(collected),
                )
            except MalformedResponseError as e:
                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_attempts} returned an "
                    f"unparseable response: {e}",
                    extra={"provider": provider.name.value, "batch_index": attempt},
                )
                continue

            before = len(collected)
            collected = deduplicate_questions(collected + result.questions)
            logger.info(
                f"Attempt {attempt + 1}/{self.max_attempts}: +{len(collected) - before} "
                f"new questions ({len(collected)}/{target})",
                extra={"provider": provider.name.value, "batch_index": attempt},
            )

        return collected[:target], calls

    async def _generate_sub_batch(
        self,
        provider: ProviderConfig,
        request: GenerationRequest,
        count: int,
        batch_index: int,
        include_images: bool,
        existing_count: int = 0,
    ) -> BatchResult:
        """Issue one generation call and normalize its output."""
        prompt = build_question_prompt(
            request.source_text,
            request.question_types,
            count,
            self.true_false_labels,
            existing_count=existing_count,
            include_images=include_images,
        )
        raw_text = await provider.complete_text(
            prompt,
            images=request.images if include_images else None,
            max_tokens=self.max_tokens,
            timeout=self.timeout_seconds,
        )

        items = parse_questions(raw_text)
        questions, discarded = normalize_questions(
            items, request.question_types, self.true_false_labels
        )
        logger.info(
            f"Batch {batch_index + 1} generated: {len(questions)} valid questions "
            f"({discarded} discarded)",
            extra={"provider": provider.name.value, "batch_index": batch_index},
        )
        return BatchResult(
            questions=questions,
            source_batch_index=batch_index,
            discarded=discarded,
            raw_count=len(items),
        )
