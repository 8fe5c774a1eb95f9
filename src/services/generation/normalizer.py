"""
Response normalizer.

Turns the free-form text returned by the model into the strict slide schema.
A response that cannot be decoded is not an error: it yields a fallback deck
tagged ``parsed=False`` so callers can tell "model answered but the format was
unusable" apart from "model call failed".
"""

import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.models.slide import Slide, copy_deck

logger = logging.getLogger(__name__)

IMAGE_URL_TEMPLATE = "https://picsum.photos/seed/{seed}/800/450.jpg"
FALLBACK_TITLE = "Generated Content"
FALLBACK_CONTENT_LENGTH = 500

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")


class NormalizeContext(BaseModel):
    """What the normalizer needs besides the raw text."""
    
    prompt: str = Field(default="", description="Prompt the image seeds derive from")
    fallback_slides: Optional[list[Slide]] = Field(
        default=None,
        description="Deck returned unchanged when the response is unusable (revisions)"
    )


class NormalizedDeck(BaseModel):
    """Result of normalizing one model response."""
    
    slides: list[Slide]
    message: Optional[str] = None
    parsed: bool = True


def prompt_slug(prompt: str) -> str:
    """Lowercase the prompt and join whitespace runs with dashes."""
    return _WHITESPACE_RE.sub("-", prompt).lower()


def image_seed(prompt: str, suffix: str | int) -> str:
    """Build the deterministic image seed for a prompt."""
    return f"{prompt_slug(prompt)}-{suffix}"


def slide_image_url(prompt: str, index: int | str) -> str:
    """Image reference for the slide at ``index``; same input, same URL."""
    return IMAGE_URL_TEMPLATE.format(seed=image_seed(prompt, index))


def strip_code_fences(text: str) -> str:
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def _to_slide(entry: Any, index: int, prompt: str) -> Slide:
    if not isinstance(entry, dict) or entry.get("title") is None:
        raise ValueError(f"slide {index} is not an object with a title")
    
    slide_type = "title" if index == 0 else "content"
    return Slide(
        title=str(entry["title"]),
        subtitle=str(entry.get("subtitle") or ""),
        content=str(entry.get("content") or ""),
        type=slide_type,
        image=slide_image_url(prompt, index),
        layout=slide_type,
    )


def _fallback(raw_text: str, context: NormalizeContext) -> NormalizedDeck:
    if context.fallback_slides:
        return NormalizedDeck(
            slides=copy_deck(context.fallback_slides),
            message=None,
            parsed=False,
        )
    
    slide = Slide(
        title=FALLBACK_TITLE,
        content=raw_text[:FALLBACK_CONTENT_LENGTH],
        type="title",
        image=slide_image_url(context.prompt, 0),
        layout="title",
    )
    return NormalizedDeck(slides=[slide], message=None, parsed=False)


def normalize(raw_text: str, context: Optional[NormalizeContext] = None) -> NormalizedDeck:
    """
    Decode ``raw_text`` into a deck.
    
    Never raises on malformed text.
    """
    context = context or NormalizeContext()
    raw_text = raw_text or ""
    
    try:
        payload = json.loads(strip_code_fences(raw_text))
        if not isinstance(payload, dict):
            raise ValueError("response is not a JSON object")
        
        entries = payload.get("slides")
        if not isinstance(entries, list) or not entries:
            raise ValueError("response has no slides")
        
        slides = [_to_slide(entry, i, context.prompt) for i, entry in enumerate(entries)]
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        logger.warning(f"⚠️ Could not parse AI response: {e}")
        return _fallback(raw_text, context)
    
    message = payload.get("message")
    return NormalizedDeck(
        slides=slides,
        message=str(message) if message else None,
        parsed=True,
    )
