"""Markup stripping shared by the document exporters."""
import re

_PATTERNS = (
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"(?<!\*)\*(?!\s)(.*?)(?<!\s)\*(?!\*)"), r"\1"),
    (re.compile(r"__(.*?)__"), r"\1"),
    (re.compile(r"`(.*?)`"), r"\1"),
    (re.compile(r"\[(.*?)\]\((.*?)\)"), r"\1"),
)

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')
DEFAULT_FILENAME = "presentation"


def strip_markdown(text: str) -> str:
    """
    Remove bold, italic, inline-code and link markers, keeping their text.
    
    Bullet markers at line starts (``* item``) are left alone because the
    italic pattern requires a non-space right after the opening asterisk.
    """
    if not text:
        return ""
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def export_filename(prompt: str, extension: str) -> str:
    """Derive a download filename from the active prompt."""
    stem = _UNSAFE_FILENAME_CHARS.sub(" ", prompt or "").strip().strip(".")
    return f"{stem or DEFAULT_FILENAME}.{extension}"
