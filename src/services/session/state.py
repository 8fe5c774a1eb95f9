"""Immutable state record of one slide-building conversation."""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.models.session import Message
from src.models.slide import Slide
from src.services.generation.errors import ErrorCategory


class SessionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_GENERATION = "awaiting_generation"
    DISPLAYING = "displaying"
    ERRORING = "erroring"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ThinkingStep(BaseModel):
    """One line of the simulated progress display."""
    model_config = ConfigDict(frozen=True)
    
    title: str
    description: str
    status: StepStatus = StepStatus.PENDING


class ErrorBanner(BaseModel):
    """Error shown above the conversation after a failed model call."""
    model_config = ConfigDict(frozen=True)
    
    reason: str
    category: ErrorCategory
    retryable: bool = False
    details: str = ""
    retry_remaining: int = Field(default=0, ge=0, description="Seconds until retry is offered")


TurnAction = Literal["generate", "revise"]


class SessionState(BaseModel):
    """
    Snapshot of the session controller.
    
    Never mutated: transitions return a new record, so a snapshot handed to a
    subscriber stays valid after the controller moves on.
    """
    model_config = ConfigDict(frozen=True)
    
    phase: SessionPhase = SessionPhase.IDLE
    session_id: Optional[str] = None
    prompt: str = ""
    last_prompt: str = ""
    last_action: Optional[TurnAction] = None
    messages: tuple[Message, ...] = ()
    deck: tuple[Slide, ...] = ()
    thinking: tuple[ThinkingStep, ...] = ()
    error: Optional[ErrorBanner] = None
    retry_count: int = 0
    
    @property
    def is_busy(self) -> bool:
        return self.phase is SessionPhase.AWAITING_GENERATION
    
    @property
    def show_thinking(self) -> bool:
        return bool(self.thinking)
    
    @property
    def can_retry(self) -> bool:
        return (
            self.phase is SessionPhase.ERRORING
            and self.error is not None
            and self.error.retryable
            and self.error.retry_remaining == 0
            and bool(self.last_prompt)
        )
    
    def to_dict(self) -> dict:
        """Convert state to dictionary for API responses."""
        data = self.model_dump(mode="json")
        data["is_busy"] = self.is_busy
        data["can_retry"] = self.can_retry
        data["slide_count"] = len(self.deck)
        data["message_count"] = len(self.messages)
        return data
