"""
Prompt Dispatcher.

Composes generation and revision prompts, runs them through the backoff
caller and the response normalizer, and reports a tagged outcome. Failures
always come with a locally synthesized deck so the caller has something to
display even when the model is unreachable.
"""

import logging
from typing import Awaitable, Callable, Optional, Sequence, Union

from src.core import get_settings, traced
from src.models.session import Message
from src.models.slide import Slide, copy_deck

from .backoff import call_with_backoff
from .client import TextModelClient, get_text_model_client
from .errors import ErrorCategory, GenerationError
from .fallback import fallback_message, synthesize_fallback_deck
from .normalizer import NormalizeContext, normalize
from .outcome import FatalFailure, GenerationSuccess, RetryableFailure
from .prompts import build_generate_prompt, build_revise_prompt

logger = logging.getLogger(__name__)

QUOTA_MESSAGE = "You've exceeded your API quota. Please try again later or upgrade your plan."
OVERLOADED_MESSAGE = "The AI service is currently overloaded. Please try again in a few moments."
UNAVAILABLE_MESSAGE = "The AI service is not configured."

Outcome = Union[GenerationSuccess, RetryableFailure, FatalFailure]


class PromptDispatcher:
    """Generate and revise decks through the hosted model."""
    
    def __init__(
        self,
        client: Optional[TextModelClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self._settings = get_settings()
        self._client = client or get_text_model_client()
        self._sleep = sleep
    
    @property
    def model_name(self) -> str:
        return self._client.model_name
    
    async def generate(
        self,
        topic: str,
        recent_history: Sequence[Message] = (),
    ) -> Outcome:
        """Create a fresh deck about ``topic``."""
        logger.info(f"📝 Generating slides for prompt: {topic}")
        prompt = build_generate_prompt(
            topic,
            recent_history,
            limit=self._settings.history_context_messages,
        )
        
        try:
            raw_text = await self._call_model(prompt)
        except GenerationError as e:
            return self._failure(e, topic, synthesize_fallback_deck(topic))
        
        result = normalize(raw_text, NormalizeContext(prompt=topic))
        logger.info(f"✅ Generated {len(result.slides)} slides")
        return GenerationSuccess(deck=result.slides, message=result.message, parsed=result.parsed)
    
    async def revise(
        self,
        instruction: str,
        current_deck: Sequence[Slide],
        topic: Optional[str] = None,
    ) -> Outcome:
        """
        Apply ``instruction`` to ``current_deck`` and return the full updated deck.
        
        ``topic`` seeds the slide images; it defaults to the instruction.
        """
        logger.info(f"✏️ Editing slides with prompt: {instruction}")
        current = copy_deck(list(current_deck))
        topic = topic or instruction
        prompt = build_revise_prompt(instruction, current)
        
        try:
            raw_text = await self._call_model(prompt)
        except GenerationError as e:
            fallback = current or synthesize_fallback_deck(topic)
            return self._failure(e, topic, fallback)
        
        result = normalize(raw_text, NormalizeContext(prompt=topic, fallback_slides=current or None))
        logger.info(f"✅ Slides edited successfully ({len(result.slides)} slides)")
        return GenerationSuccess(deck=result.slides, message=result.message, parsed=result.parsed)
    
    async def _call_model(self, prompt: str) -> str:
        if not self._client.is_available:
            raise GenerationError(UNAVAILABLE_MESSAGE, ErrorCategory.UNAVAILABLE)
        
        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        
        with traced("generate_text", model=self.model_name, prompt_length=len(prompt)) as span:
            text = await call_with_backoff(
                lambda: self._client.generate_text(prompt),
                max_attempts=self._settings.generation_max_attempts,
                base_delay=self._settings.generation_backoff_base_seconds,
                **kwargs,
            )
            span.set_attribute("slidecraft.response_length", len(text))
        return text
    
    def _failure(self, error: GenerationError, topic: str, fallback: list[Slide]) -> Outcome:
        logger.error(f"❌ Generation failed ({error.category.value}): {error}")
        message = fallback_message(topic)
        
        if error.category is ErrorCategory.OVERLOADED:
            return RetryableFailure(
                reason=OVERLOADED_MESSAGE,
                delay_seconds=self._settings.retry_cooldown_seconds,
                fallback_deck=fallback,
                fallback_message=message,
            )
        if error.category is ErrorCategory.RATE_LIMITED:
            return FatalFailure(
                reason=QUOTA_MESSAGE,
                category=error.category,
                details=str(error),
                fallback_deck=fallback,
                fallback_message=message,
            )
        if error.category is ErrorCategory.UNAVAILABLE:
            return FatalFailure(
                reason=UNAVAILABLE_MESSAGE,
                category=error.category,
                fallback_deck=fallback,
                fallback_message=message,
            )
        return FatalFailure(
            reason=f"Failed to generate slides: {error}",
            category=ErrorCategory.UNKNOWN,
            details=str(error),
            fallback_deck=fallback,
            fallback_message=message,
        )


_prompt_dispatcher: Optional[PromptDispatcher] = None


def get_prompt_dispatcher() -> PromptDispatcher:
    """Get the singleton prompt dispatcher instance."""
    global _prompt_dispatcher
    if _prompt_dispatcher is None:
        _prompt_dispatcher = PromptDispatcher()
    return _prompt_dispatcher
