"""Slide generation: model calls, backoff, normalization and fallback decks."""

from .errors import ErrorCategory, GenerationError, classify_error
from .backoff import call_with_backoff
from .normalizer import NormalizeContext, NormalizedDeck, normalize, slide_image_url
from .fallback import synthesize_fallback_deck, fallback_message
from .outcome import GenerationOutcome, GenerationSuccess, RetryableFailure, FatalFailure
from .service import PromptDispatcher, get_prompt_dispatcher

__all__ = [
    "ErrorCategory",
    "GenerationError",
    "classify_error",
    "call_with_backoff",
    "NormalizeContext",
    "NormalizedDeck",
    "normalize",
    "slide_image_url",
    "synthesize_fallback_deck",
    "fallback_message",
    "GenerationOutcome",
    "GenerationSuccess",
    "RetryableFailure",
    "FatalFailure",
    "PromptDispatcher",
    "get_prompt_dispatcher",
]
