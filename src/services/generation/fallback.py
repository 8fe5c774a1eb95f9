"""Network-free deck synthesizer used when the model cannot be reached."""

from src.models.slide import Slide

from .normalizer import IMAGE_URL_TEMPLATE, prompt_slug

FALLBACK_MESSAGE_TEMPLATE = (
    "I've created an informative presentation about {topic}. The slides contain "
    "detailed information about the topic, including key concepts, applications, "
    "and future outlook. You can view the slides on the right."
)


def fallback_message(topic: str) -> str:
    return FALLBACK_MESSAGE_TEMPLATE.format(topic=topic)


def _image(topic: str, suffix: str = "") -> str:
    seed = prompt_slug(topic)
    if suffix:
        seed = f"{seed}-{suffix}"
    return IMAGE_URL_TEMPLATE.format(seed=seed)


def synthesize_fallback_deck(topic: str) -> list[Slide]:
    """Build the four-slide overview deck purely from ``topic``."""
    return [
        Slide(
            title=topic,
            subtitle="An Informative Overview",
            content="",
            type="title",
            image=_image(topic),
            layout="title",
        ),
        Slide(
            title="Introduction",
            subtitle="Understanding the Basics",
            content=(
                f"{topic} represents an important area of study and practice. "
                "This presentation explores fundamental concepts, current "
                "applications, and future implications."
            ),
            type="content",
            image=_image(topic, "intro"),
            layout="content",
        ),
        Slide(
            title="Key Concepts",
            subtitle="Fundamental Principles",
            content=(
                f"• Definition and Scope: What {topic} encompasses\n"
                f"• Historical Development: How {topic} has evolved\n"
                f"• Core Components: Essential elements of {topic}"
            ),
            type="content",
            image=_image(topic, "concepts"),
            layout="content",
        ),
        Slide(
            title="Future Outlook",
            subtitle="Trends and Predictions",
            content=(
                "• Emerging Developments: New advances on the horizon\n"
                "• Potential Challenges: Obstacles that may need addressing\n"
                "• Opportunities: Areas for growth and innovation"
            ),
            type="content",
            image=_image(topic, "future"),
            layout="content",
        ),
    ]
