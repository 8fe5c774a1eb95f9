"""
Font setup for the PDF exporter.

The base-14 PDF fonts only cover WinAnsi, so slide text is set in a
TrueType font (the configured one, DejaVu Sans from the system, or the Vera
family bundled with reportlab). Characters that font has no glyph for, CJK
text in particular, are switched to a Unicode CID font run by run.
"""
import logging
from functools import lru_cache
from itertools import groupby
from pathlib import Path
from typing import Iterator, NamedTuple, Optional
from xml.sax.saxutils import escape

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFError, TTFont

logger = logging.getLogger(__name__)

FALLBACK_FONT = "STSong-Light"

SYSTEM_FONT_DIRS = (
    "/usr/share/fonts/truetype/dejavu",
    "/usr/share/fonts/dejavu",
    "/usr/share/fonts/TTF",
    "/Library/Fonts",
)

# (regular, bold, italic); bare file names resolve through reportlab's TTF search path
FONT_FAMILIES = (
    ("DejaVuSans.ttf", "DejaVuSans-Bold.ttf", "DejaVuSans-Oblique.ttf"),
    ("Vera.ttf", "VeraBd.ttf", "VeraIt.ttf"),
)


class PdfFonts(NamedTuple):
    """Registered font names and the code points the text font can draw."""
    regular: str
    bold: str
    italic: str
    coverage: frozenset


def _register(name: str, filename: str) -> bool:
    try:
        pdfmetrics.registerFont(TTFont(name, filename))
    except (TTFError, OSError) as e:
        logger.debug(f"Font {filename} not available: {e}")
        return False
    return True


def _candidates(font_path: Optional[str]) -> Iterator[tuple[str, str, str]]:
    if font_path:
        yield font_path, font_path, font_path
    for family in FONT_FAMILIES:
        for directory in SYSTEM_FONT_DIRS:
            yield tuple(str(Path(directory) / name) for name in family)
        yield family


@lru_cache(maxsize=None)
def get_pdf_fonts(font_path: Optional[str] = None) -> PdfFonts:
    """Register the PDF fonts once per font path."""
    pdfmetrics.registerFont(UnicodeCIDFont(FALLBACK_FONT))

    for regular, bold, italic in _candidates(font_path):
        base = f"SlideText-{Path(regular).stem}"
        if not _register(base, regular):
            continue
        bold_name = base + "-Bold" if _register(base + "-Bold", bold) else base
        italic_name = base + "-Italic" if _register(base + "-Italic", italic) else base
        face = pdfmetrics.getFont(base).face
        logger.info(f"🔤 PDF text font: {regular}")
        return PdfFonts(base, bold_name, italic_name, frozenset(getattr(face, "charToGlyph", {})))

    logger.warning("⚠️ No TrueType font found; PDF text limited to WinAnsi")
    return PdfFonts("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", frozenset(range(32, 256)))


def font_markup(text: str, fonts: PdfFonts) -> str:
    """Escape ``text`` for a Paragraph, routing uncovered characters to the CID font."""
    parts = []
    for fallback, run in groupby(text, key=lambda ch: ch != "\n" and ord(ch) not in fonts.coverage):
        chunk = escape("".join(run))
        parts.append(f'<font name="{FALLBACK_FONT}">{chunk}</font>' if fallback else chunk)
    return "".join(parts).replace("\n", "<br/>")
