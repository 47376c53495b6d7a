"""Tests for batch question generation."""

import asyncio
import json
import logging
import re

import pytest

from conftest import make_provider, mcq_item, mcq_payload
from studyai.errors import (
    MalformedResponseError,
    ProviderCallError,
    ValidationExhaustedError,
)
from studyai.error_classifier import ErrorCategory, ErrorClassifier
from studyai.models import GenerationRequest, QuestionType
from studyai.orchestrator import BatchOrchestrator, split_into_sub_batches


def _request(target, types=None, images=None, text="Source text"):
    return GenerationRequest(
        source_text=text,
        images=images or [],
        question_types=types or [QuestionType.MULTIPLE_CHOICE],
        target_count=target,
    )


def _provider_error(name="deepseek"):
    return ProviderCallError(
        provider_name=name,
        classified_error=ErrorClassifier.classify_error(Exception("500 server error"), name),
    )


class TestSplitIntoSubBatches:
    """Tests for sub-batch sizing."""

    def test_exact_multiple(self):
        assert split_into_sub_batches(16, 8) == [8, 8]

    def test_last_batch_smaller(self):
        assert split_into_sub_batches(15, 8) == [8, 7]

    def test_single_small_batch(self):
        assert split_into_sub_batches(3, 8) == [3]


class TestParallelStrategy:
    """Tests for the over-fetching parallel strategy."""

    @pytest.mark.asyncio
    async def test_target_ten_issues_two_sub_batches(self):
        """Ten questions -> fetch 15 -> sub-batches of 8 and 7, trimmed to 10."""

        def respond(prompt):
            count = 8 if "EXACTLY 8 practice questions" in prompt else 7
            start = 0 if count == 8 else 100
            return mcq_payload(start, count)

        provider = make_provider("deepseek", [respond])
        orchestrator = BatchOrchestrator()

        questions = await orchestrator.generate(provider, _request(10))

        assert len(questions) == 10
        calls = provider.backend.calls
        assert len(calls) == 2
        prompts = sorted(c["prompt"] for c in calls)
        assert any("EXACTLY 8 practice questions" in p for p in prompts)
        assert any("EXACTLY 7 practice questions" in p for p in prompts)
        # Batch order is preserved: the first sub-batch comes first
        assert questions[0].question_text == "Question 0?"

    @pytest.mark.asyncio
    async def test_duplicates_removed_across_sub_batches(self):
        """Both sub-batches return the same 8 questions; only unique ones survive."""
        provider = make_provider("deepseek", [mcq_payload(0, 8)])
        orchestrator = BatchOrchestrator()

        questions = await orchestrator.generate(provider, _request(10))

        assert len(questions) == 8
        texts = [q.question_text.casefold() for q in questions]
        assert len(set(texts)) == len(texts)

    @pytest.mark.asyncio
    async def test_case_insensitive_duplicates_removed(self):
        payload = json.dumps(
            [mcq_item(1), {**mcq_item(1), "question": "  QUESTION 1? "}, mcq_item(2)]
        )
        provider = make_provider("deepseek", [payload])
        orchestrator = BatchOrchestrator(sub_batch_size=8)

        questions = await orchestrator.generate(provider, _request(2))

        assert [q.question_text for q in questions] == ["Question 1?", "Question 2?"]

    @pytest.mark.asyncio
    async def test_short_result_is_soft_degradation(self, caplog):
        provider = make_provider("deepseek", [mcq_payload(0, 3)])
        orchestrator = BatchOrchestrator()

        questions = await orchestrator.generate(provider, _request(5))

        assert len(questions) == 3
        assert "Only 3/5 unique questions" in caplog.text

    @pytest.mark.asyncio
    async def test_true_false_coercion_and_fences(self):
        """Fenced output with English labels is repaired into the configured pair."""
        items = [
            {
                "question": f"Statement {i}.",
                "options": ["True", "False"],
                "correctAnswer": "False" if i % 2 else "True",
                "type": "trueFalse",
            }
            for i in range(6)
        ]
        fenced = "```json\n" + json.dumps(items) + "\n```"
        provider = make_provider("deepseek", [fenced])
        orchestrator = BatchOrchestrator()

        questions = await orchestrator.generate(
            provider, _request(4, types=[QuestionType.TRUE_FALSE])
        )

        assert len(questions) == 4
        for question in questions:
            assert question.options == ["صح", "خطأ"]
            assert question.correct_answer in ("صح", "خطأ")
        assert questions[1].correct_answer == "خطأ"

    @pytest.mark.asyncio
    async def test_images_only_sent_with_first_sub_batch(self, sample_image):
        provider = make_provider("openai", [mcq_payload(0, 8)], supports_vision=True)
        orchestrator = BatchOrchestrator()

        await orchestrator.generate(provider, _request(10, images=[sample_image]))

        calls = provider.backend.calls
        with_images = [c for c in calls if c["images"]]
        assert len(calls) == 2
        assert len(with_images) == 1
        assert with_images[0]["prompt"].startswith("First, analyze the image(s)")

    @pytest.mark.asyncio
    async def test_zero_valid_questions_raises_exhausted(self):
        provider = make_provider("deepseek", ['[{"question": "", "type": "mcq"}]'])
        orchestrator = BatchOrchestrator()

        with pytest.raises(ValidationExhaustedError) as exc_info:
            await orchestrator.generate(provider, _request(3))

        assert exc_info.value.partial == []
        assert exc_info.value.target_count == 3

    @pytest.mark.asyncio
    async def test_malformed_sub_batch_fails_attempt(self):
        provider = make_provider("deepseek", ["I cannot comply."])
        orchestrator = BatchOrchestrator()

        with pytest.raises(MalformedResponseError):
            await orchestrator.generate(provider, _request(3))

    @pytest.mark.asyncio
    async def test_failed_sub_batch_cancels_siblings(self):
        """One sub-batch fails fast; the slow sibling is cancelled."""

        async def slow(prompt):
            await asyncio.sleep(5)
            return mcq_payload(0, 8)

        def respond(prompt):
            if "EXACTLY 8 practice questions" in prompt:
                return slow(prompt)
            raise _provider_error()

        provider = make_provider("deepseek", [respond])
        orchestrator = BatchOrchestrator()

        with pytest.raises(ProviderCallError):
            await asyncio.wait_for(orchestrator.generate(provider, _request(10)), timeout=2)

    @pytest.mark.asyncio
    async def test_oversized_target_is_clamped(self):
        """A target of 100 is clamped to 25 -> fetch 38 -> five sub-batches."""
        offsets = iter(range(0, 1000, 100))

        def respond(prompt):
            count = int(re.search(r"EXACTLY (\d+) practice questions", prompt).group(1))
            return mcq_payload(next(offsets), count)

        provider = make_provider("deepseek", [respond])
        orchestrator = BatchOrchestrator(max_count=25)

        questions = await orchestrator.generate(provider, _request(100))

        assert len(questions) == 25
        assert len(provider.backend.calls) == 5

    @pytest.mark.asyncio
    async def test_timeout_is_provider_failure(self):
        provider = make_provider("deepseek", [mcq_payload(0, 5)], delay=1.0)
        orchestrator = BatchOrchestrator(timeout_seconds=0.01)

        with pytest.raises(ProviderCallError) as exc_info:
            await orchestrator.generate(provider, _request(3))

        assert exc_info.value.classified_error.category == ErrorCategory.TIMEOUT


class TestSequentialStrategy:
    """Tests for the shortfall-driven sequential strategy."""

    @pytest.mark.asyncio
    async def test_requests_shortfall_and_dedupes_across_attempts(self):
        provider = make_provider(
            "deepseek",
            [
                mcq_payload(0, 6),
                # Repeats two earlier questions and adds four new ones
                mcq_payload(4, 6),
            ],
        )
        orchestrator = BatchOrchestrator(strategy="sequential")

        questions = await orchestrator.generate(provider, _request(10))

        assert len(questions) == 10
        calls = provider.backend.calls
        assert len(calls) == 2
        assert "EXACTLY 10 practice questions" in calls[0]["prompt"]
        assert "You previously generated only 6 questions" in calls[1]["prompt"]
        assert "EXACTLY 4 MORE questions" in calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_stops_when_target_reached(self):
        provider = make_provider("deepseek", [mcq_payload(0, 5)])
        orchestrator = BatchOrchestrator(strategy="sequential")

        questions = await orchestrator.generate(provider, _request(5))

        assert len(questions) == 5
        assert len(provider.backend.calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_attempt_counts_and_loop_continues(self, caplog):
        provider = make_provider("deepseek", ["not json", mcq_payload(0, 4)])
        orchestrator = BatchOrchestrator(strategy="sequential")

        questions = await orchestrator.generate(provider, _request(4))

        assert len(questions) == 4
        assert len(provider.backend.calls) == 2
        assert "unparseable response" in caplog.text

    @pytest.mark.asyncio
    async def test_bounded_attempts_return_partial(self):
        provider = make_provider("deepseek", [mcq_payload(0, 2)])
        orchestrator = BatchOrchestrator(strategy="sequential", max_attempts=3)

        questions = await orchestrator.generate(provider, _request(5))

        assert len(questions) == 2
        assert len(provider.backend.calls) == 3

    @pytest.mark.asyncio
    async def test_all_attempts_malformed_raises_exhausted(self):
        provider = make_provider("deepseek", ["nope"])
        orchestrator = BatchOrchestrator(strategy="sequential", max_attempts=2)

        with pytest.raises(ValidationExhaustedError):
            await orchestrator.generate(provider, _request(3))

        assert len(provider.backend.calls) == 2

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        provider = make_provider("deepseek", [_provider_error()])
        orchestrator = BatchOrchestrator(strategy="sequential")

        with pytest.raises(ProviderCallError):
            await orchestrator.generate(provider, _request(3))


class TestFromSettings:
    """Tests for building an orchestrator from settings."""

    def test_reads_tuning_values(self, test_settings):
        test_settings.question_sub_batch_size = 5
        orchestrator = BatchOrchestrator.from_settings(test_settings)
        assert orchestrator.sub_batch_size == 5
        assert orchestrator.strategy == "parallel"
        assert orchestrator.true_false_labels == ("صح", "خطأ")
        assert orchestrator.max_count == test_settings.question_max_count

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            BatchOrchestrator(strategy="random")


def test_logs_fetch_summary(caplog):
    caplog.set_level(logging.INFO, logger="studyai")
    provider = make_provider("deepseek", [mcq_payload(0, 5)])
    asyncio.run(BatchOrchestrator().generate(provider, _request(3)))
    assert "fetched" in caplog.text
