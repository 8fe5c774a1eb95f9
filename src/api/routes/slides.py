"""Slide generation API endpoints."""
import logging
from typing import Any, Union

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.core import get_settings
from src.models.session import Message
from src.models.slide import Slide
from src.services import get_prompt_dispatcher
from src.services.generation import FatalFailure, GenerationSuccess, RetryableFailure
from src.services.generation.errors import ErrorCategory

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["slides"])

GENERATED_MESSAGE = "I've generated slides based on your request."
EDITED_MESSAGE = "Slides updated based on your request."


class GenerateSlidesRequest(BaseModel):
    """Request payload for slide generation."""
    model_config = ConfigDict(populate_by_name=True)
    
    prompt: str = Field(default="", max_length=10000, description="Topic or request")
    conversation_history: list[Message] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Previous messages in the conversation"
    )


class EditSlidesRequest(BaseModel):
    """Request payload for slide revision."""
    model_config = ConfigDict(populate_by_name=True)
    
    prompt: str = Field(default="", max_length=10000, description="Edit instruction")
    current_slides: list[Slide] = Field(
        default_factory=list,
        alias="currentSlides",
        description="The complete current deck"
    )


def outcome_response(
    outcome: Union[GenerationSuccess, RetryableFailure, FatalFailure],
    default_message: str,
    failure_label: str,
) -> JSONResponse:
    """Translate a dispatcher outcome into the wire format."""
    if isinstance(outcome, GenerationSuccess):
        return JSONResponse({
            "message": outcome.message or default_message,
            "slides": [s.model_dump() for s in outcome.deck],
        })
    
    if isinstance(outcome, RetryableFailure):
        return JSONResponse(status_code=503, content={
            "error": "Service temporarily unavailable",
            "message": outcome.reason,
            "retryDelay": outcome.delay_seconds,
            "isRetryable": True,
        })
    
    if outcome.category is ErrorCategory.RATE_LIMITED:
        return JSONResponse(status_code=429, content={
            "error": "API quota exceeded",
            "message": outcome.reason,
            "details": outcome.details,
            "isRetryable": False,
        })
    
    return JSONResponse(status_code=500, content={
        "error": failure_label,
        "details": outcome.details or outcome.reason,
        "isRetryable": False,
    })


@router.post("/generate-slides")
async def generate_slides(request: GenerateSlidesRequest) -> JSONResponse:
    """
    Generate a deck for a topic.
    
    Returns ``{message, slides}`` or an error body with ``isRetryable``.
    """
    if not request.prompt.strip():
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})
    
    dispatcher = get_prompt_dispatcher()
    outcome = await dispatcher.generate(request.prompt, request.conversation_history)
    return outcome_response(outcome, GENERATED_MESSAGE, "Failed to generate slides")


@router.post("/edit-slides")
async def edit_slides(request: EditSlidesRequest) -> JSONResponse:
    """Apply an edit instruction to the full current deck."""
    if not request.prompt.strip() or not request.current_slides:
        return JSONResponse(status_code=400, content={"error": "Prompt and current slides are required"})
    
    dispatcher = get_prompt_dispatcher()
    outcome = await dispatcher.revise(request.prompt, request.current_slides)
    return outcome_response(outcome, EDITED_MESSAGE, "Failed to edit slides")


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "OK",
        "message": f"{settings.app_name} API is running",
        "model": settings.azure_openai_deployment,
        "quota": settings.quota_note,
    }
