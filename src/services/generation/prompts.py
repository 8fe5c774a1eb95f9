"""Instruction prompts for slide generation and revision."""

import json
from typing import Sequence

from src.models.session import Message
from src.models.slide import Slide

RECENT_HISTORY_LIMIT = 3


SYSTEM_PROMPT = """You are an AI assistant that helps create PowerPoint presentations.
When a user provides a topic or request, generate structured slide content in the following JSON format:
{
  "message": "Brief response to user",
  "slides": [
    {
      "title": "Slide Title",
      "subtitle": "Optional short subtitle",
      "content": "Slide content with bullet points or paragraphs"
    }
  ]
}

Rules:
- Generate 5-8 slides for a complete presentation
- Keep titles concise and impactful
- Content should be clear, professional, and well-structured
- Use bullet points when appropriate
- Include an introduction and conclusion slide
- Respond ONLY with valid JSON (no markdown, no code blocks)"""


def build_generate_prompt(
    topic: str,
    recent_history: Sequence[Message] = (),
    limit: int = RECENT_HISTORY_LIMIT,
) -> str:
    """Build the generation prompt with at most ``limit`` prior messages as context."""
    prompt = f"{SYSTEM_PROMPT}\n\nUser Request: {topic}"
    
    context = list(recent_history)[-limit:] if limit > 0 else []
    if context:
        history = [m.model_dump(include={"sender", "text"}) for m in context]
        prompt += f"\n\nPrevious context:\n{json.dumps(history, indent=2)}"
    
    return prompt


def build_revise_prompt(instruction: str, current_deck: Sequence[Slide]) -> str:
    """Build the revision prompt asking for the complete updated deck."""
    slides = [s.model_dump() for s in current_deck]
    return f"""{SYSTEM_PROMPT}

Current slides:
{json.dumps(slides, indent=2)}

User's edit request: {instruction}

Return the UPDATED slides in the same JSON format with all slides (modified and unmodified)."""
