"""Slide-related Pydantic models."""
from typing import Literal, Optional

from pydantic import BaseModel, Field

SlideType = Literal["title", "content"]


class Slide(BaseModel):
    """A single slide of a deck."""
    
    title: str = Field(..., description="Slide title")
    subtitle: str = Field(default="", description="Optional subtitle")
    content: str = Field(
        default="",
        description="Body text with light markup (bullets, numbering, **bold**)"
    )
    type: SlideType = Field(default="content", description="Slide type")
    image: Optional[str] = Field(default=None, description="Image URI")
    layout: str = Field(default="content", description="Layout name")


def copy_deck(slides: list[Slide]) -> list[Slide]:
    """Return a deep copy of a deck so readers never observe later mutation."""
    return [slide.model_copy(deep=True) for slide in slides]
