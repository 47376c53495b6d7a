"""Parsing and normalization of generated questions.

Backends are asked for a bare JSON array but routinely wrap it in prose or
code fences, mislabel question types, and ignore the per-type option rules.
This module extracts the array and coerces every item into the shape its
type requires; the backend is never trusted to have followed instructions.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .errors import MalformedResponseError, QuestionValidationError
from .models import MCQ_OPTION_COUNT, GeneratedQuestion, QuestionType
from .text_utils import collapse_whitespace, strip_markdown_code_blocks

logger = logging.getLogger(__name__)

_QUESTION_KEYS = ("question", "questionText", "question_text", "prompt")
_OPTION_KEYS = ("options", "answer_options", "answerOptions", "choices")
_ANSWER_KEYS = ("correctAnswer", "correct_answer", "answer")

_TRUE_SYNONYMS = {"true", "t", "yes", "correct", "right", "a", "1", "صح", "صحيح", "نعم"}
_FALSE_SYNONYMS = {"false", "f", "no", "incorrect", "wrong", "b", "0", "خطأ", "خاطئ", "خطا", "لا"}

# "A", "(b)", "C)", "d.", "Option A", "A) Paris"
_LETTER_ANSWER = re.compile(
    r"^(?:option\s+)?\(?(?P<letter>[a-d])\)?(?:[\).:\-]\s*|\s+|$)(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL,
)
_OPTION_LABEL = re.compile(r"^\(?([a-d])[\).:\-]\s+", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove leading and trailing code fence markers from a response."""
    return strip_markdown_code_blocks(text or "")


def extract_json_array(text: str) -> List[Any]:
    """Locate and parse the JSON array inside a model response.

    Fence markers are stripped first, then each ``[`` is tried in order and
    the first balanced ``[...]`` substring that parses as a list is used.
    Arrays holding objects are preferred over arrays of scalars (e.g. a
    stray ``[1]`` in surrounding prose).

    Raises:
        MalformedResponseError: If no parseable array is found
    """
    cleaned = strip_code_fences(text)
    fallback: Optional[List[Any]] = None

    start = cleaned.find("[")
    while start != -1:
        end = _find_balanced_end(cleaned, start)
        if end is None:
            break
        try:
            payload = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, list):
            if any(isinstance(item, dict) for item in payload):
                return payload
            if fallback is None:
                fallback = payload
        start = cleaned.find("[", start + 1)

    if fallback is not None:
        return fallback
    raise MalformedResponseError("No JSON array found in response", raw_text=text or "")


def _find_balanced_end(text: str, start: int) -> Optional[int]:
    """Index of the ``]`` closing the bracket at ``start``, string-aware."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
    return None


def parse_questions(raw_text: str) -> List[Dict[str, Any]]:
    """Parse a raw response into question records.

    Raises:
        MalformedResponseError: If no JSON array is found
    """
    payload = extract_json_array(raw_text)
    items = [item for item in payload if isinstance(item, dict)]
    if len(items) != len(payload):
        logger.debug(f"Dropped {len(payload) - len(items)} non-object items from response")
    return items


def _first_present(raw: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _infer_type(options: List[str], answer: str) -> QuestionType:
    if not options:
        return QuestionType.SHORT_ANSWER
    if len(options) == 2:
        return QuestionType.TRUE_FALSE
    return QuestionType.MULTIPLE_CHOICE


def _resolve_type(
    raw: Dict[str, Any],
    options: List[str],
    answer: str,
    allowed_types: Sequence[QuestionType],
) -> QuestionType:
    declared: Optional[QuestionType] = None
    raw_type = raw.get("type")
    if raw_type is not None:
        try:
            declared = QuestionType(raw_type)
        except ValueError:
            declared = None

    if declared is not None and declared in allowed_types:
        return declared
    if len(allowed_types) == 1:
        return allowed_types[0]

    inferred = _infer_type(options, answer)
    if inferred in allowed_types:
        return inferred
    raise QuestionValidationError(
        f"Question type {raw_type!r} is not one of the requested types "
        f"{[t.value for t in allowed_types]}"
    )


def _normalize_true_false_answer(answer: str, labels: Tuple[str, str]) -> str:
    key = answer.strip().strip(".!").strip().casefold()
    if key == labels[0].casefold() or key in _TRUE_SYNONYMS:
        return labels[0]
    if key == labels[1].casefold() or key in _FALSE_SYNONYMS:
        return labels[1]
    logger.warning(
        f"Unrecognized true/false answer {answer!r}; defaulting to {labels[0]!r}"
    )
    return labels[0]


def _clean_options(raw_options: Any) -> List[str]:
    if not isinstance(raw_options, list):
        return []
    options: List[str] = []
    seen = set()
    for option in raw_options:
        text = _as_text(option)
        if not text:
            continue
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        options.append(text)

    # Strip "A) ", "B. " prefixes only when every option is labelled in order
    labels = [_OPTION_LABEL.match(o) for o in options]
    if options and all(
        m is not None and m.group(1).lower() == "abcd"[i]
        for i, m in enumerate(labels[:4])
    ) and len(options) <= 4:
        options = [_OPTION_LABEL.sub("", o, count=1).strip() for o in options]
    return options


def _match_mcq_answer(answer: str, options: List[str]) -> Optional[int]:
    if answer in options:
        return options.index(answer)

    folded = collapse_whitespace(answer).casefold()
    for i, option in enumerate(options):
        if collapse_whitespace(option).casefold() == folded:
            return i

    match = _LETTER_ANSWER.match(answer.strip())
    if match:
        index = "abcd".index(match.group("letter").lower())
        rest = collapse_whitespace(match.group("rest")).casefold()
        if index < len(options):
            if not rest or collapse_whitespace(options[index]).casefold() == rest:
                return index
        if rest:
            for i, option in enumerate(options):
                if collapse_whitespace(option).casefold() == rest:
                    return i

    # 1-based option number
    if answer.strip().isdigit():
        number = int(answer.strip())
        if 1 <= number <= len(options):
            return number - 1
    return None


def _normalize_mcq(options: List[str], answer: str) -> Tuple[List[str], str]:
    answer_index = _match_mcq_answer(answer, options)
    if answer_index is None:
        raise QuestionValidationError(
            f"Correct answer {answer!r} does not match any option"
        )
    correct = options[answer_index]

    if len(options) > MCQ_OPTION_COUNT:
        keep = {answer_index}
        for i in range(len(options)):
            if len(keep) == MCQ_OPTION_COUNT:
                break
            keep.add(i)
        options = [o for i, o in enumerate(options) if i in keep]

    if len(options) != MCQ_OPTION_COUNT:
        raise QuestionValidationError(
            f"Multiple choice question has {len(options)} options instead of {MCQ_OPTION_COUNT}"
        )
    return options, correct


def normalize_question(
    raw: Dict[str, Any],
    allowed_types: Sequence[QuestionType],
    true_false_labels: Tuple[str, str],
) -> GeneratedQuestion:
    """Coerce a raw record into a valid question of an allowed type.

    Args:
        raw: One parsed record from the backend
        allowed_types: Types requested by the caller (non-empty)
        true_false_labels: The fixed (true, false) option pair

    Returns:
        A question satisfying its type's shape contract

    Raises:
        QuestionValidationError: If the record cannot be repaired
    """
    if not isinstance(raw, dict):
        raise QuestionValidationError(f"Expected an object, got {type(raw).__name__}")

    question_text = _as_text(_first_present(raw, _QUESTION_KEYS))
    if not question_text:
        raise QuestionValidationError("Question text is empty")

    options = _clean_options(_first_present(raw, _OPTION_KEYS))
    answer = _as_text(_first_present(raw, _ANSWER_KEYS))
    question_type = _resolve_type(raw, options, answer, allowed_types)

    if question_type == QuestionType.TRUE_FALSE:
        options = list(true_false_labels)
        answer = _normalize_true_false_answer(answer, true_false_labels)
    elif question_type == QuestionType.SHORT_ANSWER:
        options = []
        if not answer:
            raise QuestionValidationError("Short answer question has no expected answer")
    else:
        options, answer = _normalize_mcq(options, answer)

    try:
        return GeneratedQuestion(
            question_text=question_text,
            options=options,
            correct_answer=answer,
            explanation=_as_text(raw.get("explanation")),
            type=question_type,
        )
    except ValidationError as e:
        raise QuestionValidationError(f"Invalid question: {e}") from e


def normalize_questions(
    raw_items: Iterable[Dict[str, Any]],
    allowed_types: Sequence[QuestionType],
    true_false_labels: Tuple[str, str],
) -> Tuple[List[GeneratedQuestion], int]:
    """Normalize records, dropping the ones that cannot be repaired.

    Returns:
        Tuple of (valid questions, number discarded)
    """
    questions: List[GeneratedQuestion] = []
    discarded = 0
    for i, raw in enumerate(raw_items):
        try:
            questions.append(normalize_question(raw, allowed_types, true_false_labels))
        except QuestionValidationError as e:
            discarded += 1
            logger.warning(f"Discarded generated item {i + 1}: {e}")
    return questions, discarded


def question_dedup_key(text: str) -> str:
    """Case-folded, whitespace-normalized key used for deduplication."""
    return collapse_whitespace(text).casefold()


def deduplicate_questions(questions: Iterable[GeneratedQuestion]) -> List[GeneratedQuestion]:
    """Drop questions whose text repeats an earlier one (first wins)."""
    seen = set()
    unique: List[GeneratedQuestion] = []
    for question in questions:
        key = question_dedup_key(question.question_text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(question)
    return unique
