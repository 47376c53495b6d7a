"""Request and response models for the HTTP API.

Field names follow the JSON wire format (camelCase) through aliases.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import GeneratedQuestion


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SummarizeRequest(_WireModel):
    text: Optional[str] = None
    complexity: Optional[str] = None
    count: Optional[int] = None
    images: Optional[List[str]] = None


class QuestionsRequest(_WireModel):
    text: Optional[str] = None
    types: Optional[List[str]] = None
    count: Optional[int] = None
    images: Optional[List[str]] = None


class ExplainRequest(_WireModel):
    concept: Optional[str] = None
    level: Optional[str] = None
    images: Optional[List[str]] = None


class StudyPlanRequest(_WireModel):
    topics: Optional[List[str]] = None
    days_available: Optional[int] = Field(None, alias="daysAvailable")
    hours_per_day: Optional[float] = Field(None, alias="hoursPerDay")


class FollowUpRequest(_WireModel):
    # Turns are checked by the service; malformed ones are skipped
    messages: Optional[List[Dict[str, Any]]] = None
    context: Optional[str] = None


class ExtractTextRequest(_WireModel):
    images: Optional[List[Any]] = None


class SummaryResponse(_WireModel):
    summary: str
    provider: str
    vision_used: bool = Field(False, alias="visionUsed")


class QuestionsResponse(_WireModel):
    questions: List[GeneratedQuestion]
    provider: str


class ExplanationResponse(_WireModel):
    explanation: str
    provider: str
    vision_used: bool = Field(False, alias="visionUsed")


class StudyPlanResponse(_WireModel):
    plan: str
    provider: str


class FollowUpResponse(_WireModel):
    response: str
    provider: str


class TextExtractionResponse(_WireModel):
    text: str
    success: bool = True
    error: Optional[str] = None
    provider: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    providers: List[str]
