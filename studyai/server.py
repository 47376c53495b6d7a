"""
Main FastAPI application.
"""
import logging

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studyai import __version__
from studyai.config import settings
from studyai.errors import (
    AllProvidersFailedError,
    ConfigurationError,
    InvalidRequestError,
    StudyAIError,
    ValidationExhaustedError,
)
from studyai.logging_config import setup_logging
from studyai.middleware import RequestLoggingMiddleware
from studyai.registry import Credentials, ProviderName
from studyai.schemas import (
    ErrorResponse,
    ExplainRequest,
    ExplanationResponse,
    ExtractTextRequest,
    FollowUpRequest,
    FollowUpResponse,
    HealthResponse,
    QuestionsRequest,
    QuestionsResponse,
    StudyPlanRequest,
    StudyPlanResponse,
    SummarizeRequest,
    SummaryResponse,
    TextExtractionResponse,
)
from studyai.service import StudyAssistantService

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = (
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (AllProvidersFailedError, status.HTTP_502_BAD_GATEWAY),
    (ValidationExhaustedError, status.HTTP_502_BAD_GATEWAY),
)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def status_code_for(error: Exception) -> int:
    """HTTP status code for an orchestration error (500 when unmapped)."""
    for error_cls, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_cls):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def get_service() -> StudyAssistantService:
    """Dependency providing the study assistant service."""
    return StudyAssistantService(settings)


router = APIRouter(prefix="/api/ai", responses=_ERROR_RESPONSES)


@router.post("/summarize", response_model=SummaryResponse)
async def summarize(
    body: SummarizeRequest, service: StudyAssistantService = Depends(get_service)
) -> SummaryResponse:
    """Summarize text and/or images."""
    return await service.summarize(
        body.text, body.complexity, count=body.count, images=body.images
    )


@router.post("/questions", response_model=QuestionsResponse)
async def generate_questions(
    body: QuestionsRequest, service: StudyAssistantService = Depends(get_service)
) -> QuestionsResponse:
    """Generate practice questions."""
    return await service.generate_questions(
        body.text, body.types, count=body.count, images=body.images
    )


@router.post("/explain", response_model=ExplanationResponse)
async def explain(
    body: ExplainRequest, service: StudyAssistantService = Depends(get_service)
) -> ExplanationResponse:
    """Explain a concept."""
    return await service.explain(body.concept, body.level, images=body.images)


@router.post("/study-plan", response_model=StudyPlanResponse)
async def create_study_plan(
    body: StudyPlanRequest, service: StudyAssistantService = Depends(get_service)
) -> StudyPlanResponse:
    """Create a day-by-day study plan."""
    return await service.create_study_plan(
        body.topics, body.days_available, body.hours_per_day
    )


@router.post("/follow-up", response_model=FollowUpResponse)
async def follow_up(
    body: FollowUpRequest, service: StudyAssistantService = Depends(get_service)
) -> FollowUpResponse:
    """Answer a follow-up question."""
    return await service.follow_up(body.messages, context=body.context)


@router.post(
    "/extract-text", response_model=TextExtractionResponse, response_model_exclude_none=True
)
async def extract_text(
    body: ExtractTextRequest, service: StudyAssistantService = Depends(get_service)
):
    """Extract the text shown in images.

    Failures keep the response shape: ``{"text": "", "success": false, "error": ...}``.
    """
    try:
        return await service.extract_text(body.images)
    except StudyAIError as e:
        status_code = status_code_for(e)
        log = logger.warning if status_code < 500 else logger.error
        log(f"Text extraction failed: {e}", extra={"status_code": status_code})
        return JSONResponse(
            status_code=status_code,
            content={"text": "", "success": False, "error": str(e)},
        )


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(title="Study Assistant AI", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(router)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Report which providers have credentials configured."""
        credentials = Credentials.from_settings(settings)
        configured = [
            name
            for name in settings.provider_order_list
            if credentials.key_for(ProviderName(name))
        ]
        return HealthResponse(
            status="ok" if configured else "degraded", providers=configured
        )

    @app.exception_handler(StudyAIError)
    async def study_ai_exception_handler(request: Request, exc: StudyAIError):
        """
        Map orchestration errors to ``{"error": message}`` responses.
        """
        status_code = status_code_for(exc)
        log = logger.warning if status_code < 500 else logger.error
        log(
            f"{request.method} {request.url.path} failed: {exc}",
            extra={"status_code": status_code},
        )
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        messages = [
            f"{'.'.join(str(part) for part in error.get('loc', []) if part != 'body')}: "
            f"{error.get('msg', '')}"
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request: " + "; ".join(messages)},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.
        """
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc) or "Internal server error"},
        )

    return app


app = create_application()


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "studyai.server:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
