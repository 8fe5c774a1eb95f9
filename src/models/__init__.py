"""Pydantic models and schemas for type-safe data handling."""

from .slide import Slide, SlideType, copy_deck
from .session import FileRef, Message, Session

__all__ = [
    # Slide models
    "Slide",
    "SlideType",
    "copy_deck",
    # Session models
    "FileRef",
    "Message",
    "Session",
]
