"""Domain models for generation requests and generated content."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MCQ_OPTION_COUNT = 4


class QuestionType(str, Enum):
    """Supported practice question types (values are the wire names)."""

    MULTIPLE_CHOICE = "mcq"
    TRUE_FALSE = "trueFalse"
    SHORT_ANSWER = "shortAnswer"

    @classmethod
    def _missing_(cls, value: object) -> Optional["QuestionType"]:
        if not isinstance(value, str):
            return None
        key = value.strip().replace("_", "").replace("-", "").replace(" ", "").lower()
        return _TYPE_ALIASES.get(key)


_TYPE_ALIASES = {
    "mcq": QuestionType.MULTIPLE_CHOICE,
    "multiplechoice": QuestionType.MULTIPLE_CHOICE,
    "truefalse": QuestionType.TRUE_FALSE,
    "tf": QuestionType.TRUE_FALSE,
    "shortanswer": QuestionType.SHORT_ANSWER,
    "short": QuestionType.SHORT_ANSWER,
}


class SummaryComplexity(str, Enum):
    """Summary detail tiers."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class ExplanationLevel(str, Enum):
    """Audience level for concept explanations."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GeneratedQuestion(BaseModel):
    """A practice question that satisfies its type's shape contract.

    Serialized with the wire keys ``question`` and ``correctAnswer``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question_text: str = Field(..., alias="question", min_length=1)
    options: List[str] = Field(default_factory=list)
    correct_answer: str = Field(..., alias="correctAnswer")
    explanation: str = ""
    type: QuestionType

    @model_validator(mode="after")
    def _check_shape(self) -> "GeneratedQuestion":
        if self.type == QuestionType.MULTIPLE_CHOICE:
            if len(self.options) != MCQ_OPTION_COUNT:
                raise ValueError(
                    f"multiple choice questions need exactly {MCQ_OPTION_COUNT} options, "
                    f"got {len(self.options)}"
                )
            if self.correct_answer not in self.options:
                raise ValueError("correct_answer must be one of the options")
        elif self.type == QuestionType.TRUE_FALSE:
            if len(self.options) != 2 or self.options[0] == self.options[1]:
                raise ValueError("true/false questions need exactly two distinct options")
            if self.correct_answer not in self.options:
                raise ValueError("correct_answer must be one of the options")
        else:
            if self.options:
                raise ValueError("short answer questions must not have options")
            if not self.correct_answer.strip():
                raise ValueError("short answer questions need an expected answer")
        return self


class GenerationRequest(BaseModel):
    """A validated question-generation request."""

    source_text: str = ""
    images: List[str] = Field(default_factory=list)
    question_types: List[QuestionType] = Field(
        default_factory=lambda: [QuestionType.MULTIPLE_CHOICE], min_length=1
    )
    target_count: int = Field(10, ge=1)

    @field_validator("question_types")
    @classmethod
    def _unique_types(cls, value: List[QuestionType]) -> List[QuestionType]:
        return list(dict.fromkeys(value))

    @property
    def has_images(self) -> bool:
        return bool(self.images)


class ChatMessage(BaseModel):
    """A chat-completion message."""

    role: Literal["system", "user", "assistant"]
    content: str


class ConversationMessage(BaseModel):
    """A follow-up conversation turn as sent by the client."""

    type: str
    content: Optional[str] = None


@dataclass
class BatchResult:
    """Normalized output of one generation sub-request."""

    questions: List[GeneratedQuestion]
    source_batch_index: int
    discarded: int = 0
    raw_count: int = field(default=0)
