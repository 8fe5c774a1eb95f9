"""Tagged result of one dispatcher call."""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from src.models.slide import Slide

from .errors import ErrorCategory


class GenerationSuccess(BaseModel):
    """The model answered; ``parsed`` is False when its format was unusable."""
    
    kind: Literal["success"] = "success"
    deck: list[Slide]
    message: Optional[str] = None
    parsed: bool = True


class RetryableFailure(BaseModel):
    """The service was overloaded past the backoff budget."""
    
    kind: Literal["retryable"] = "retryable"
    reason: str
    category: ErrorCategory = ErrorCategory.OVERLOADED
    delay_seconds: int = 0
    fallback_deck: list[Slide]
    fallback_message: str


class FatalFailure(BaseModel):
    """Quota exhaustion, unknown errors or an unconfigured model."""
    
    kind: Literal["fatal"] = "fatal"
    reason: str
    category: ErrorCategory = ErrorCategory.UNKNOWN
    details: str = ""
    fallback_deck: list[Slide]
    fallback_message: str


GenerationOutcome = Annotated[
    Union[GenerationSuccess, RetryableFailure, FatalFailure],
    Field(discriminator="kind"),
]
