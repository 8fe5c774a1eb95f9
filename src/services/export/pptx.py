"""PowerPoint export using python-pptx."""
import io
import logging
from typing import Sequence

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.util import Inches, Pt

from src.models.slide import Slide, copy_deck

from .images import load_image
from .markup import strip_markdown

logger = logging.getLogger(__name__)

PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

BLANK_LAYOUT_INDEX = 6
LEFT = Inches(0.5)
WIDTH = Inches(9)
TEXT_COLOR = RGBColor(0x36, 0x36, 0x36)
SUBTITLE_COLOR = RGBColor(0x66, 0x66, 0x66)


def _add_text(slide, text: str, top, height, size: int, *, bold=False, italic=False, color=TEXT_COLOR):
    box = slide.shapes.add_textbox(LEFT, top, WIDTH, height)
    frame = box.text_frame
    frame.word_wrap = True
    frame.text = text
    for paragraph in frame.paragraphs:
        for run in paragraph.runs:
            run.font.size = Pt(size)
            run.font.bold = bold
            run.font.italic = italic
            run.font.color.rgb = color
    return box


def _add_image(slide, uri: str) -> None:
    data = load_image(uri)
    if data is None:
        return
    try:
        slide.shapes.add_picture(io.BytesIO(data), LEFT, Inches(0.5), width=WIDTH, height=Inches(3.5))
    except Exception as e:
        logger.warning(f"Could not add image {uri[:80]}: {e}")


def export_pptx(deck: Sequence[Slide]) -> bytes:
    """Render ``deck`` into a .pptx file, one slide per deck entry."""
    slides = copy_deck(list(deck))
    prs = Presentation()
    layout = prs.slide_layouts[BLANK_LAYOUT_INDEX]
    
    for slide in slides:
        slide_obj = prs.slides.add_slide(layout)
        
        if slide.image:
            _add_image(slide_obj, slide.image)
        
        _add_text(slide_obj, slide.title, Inches(4.2), Inches(0.6), 28, bold=True)
        
        if slide.subtitle:
            _add_text(slide_obj, slide.subtitle, Inches(5.0), Inches(0.4), 16, italic=True, color=SUBTITLE_COLOR)
        
        if slide.content:
            _add_text(slide_obj, strip_markdown(slide.content), Inches(5.6), Inches(1.6), 12)
    
    buffer = io.BytesIO()
    prs.save(buffer)
    logger.info(f"📑 Exported {len(slides)} slides to PPTX")
    return buffer.getvalue()
