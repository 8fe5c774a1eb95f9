"""PDF export using reportlab."""
import io
import logging
from typing import Optional, Sequence
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image as RLImage
from reportlab.platypus import KeepInFrame, PageBreak, Paragraph, SimpleDocTemplate, Spacer

from src.core import get_settings
from src.models.slide import Slide, copy_deck

from .fonts import PdfFonts, font_markup, get_pdf_fonts
from .images import load_image
from .markup import strip_markdown

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

MARGIN = 20 * mm
IMAGE_WIDTH = 170 * mm
IMAGE_HEIGHT = 100 * mm
FRAME_PADDING = 12


def _styles(fonts: PdfFonts) -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("SlideTitle", parent=base["Heading1"], fontName=fonts.bold, fontSize=20, leading=24),
        "subtitle": ParagraphStyle("SlideSubtitle", parent=base["Normal"], fontName=fonts.italic, fontSize=14, leading=18),
        "body": ParagraphStyle("SlideBody", parent=base["Normal"], fontName=fonts.regular, fontSize=11, leading=15),
    }


def _image(uri: str) -> Optional[RLImage]:
    data = load_image(uri)
    if data is None:
        return None
    try:
        ImageReader(io.BytesIO(data)).getSize()
    except Exception as e:
        logger.warning(f"Could not add image {uri[:80]}: {e}")
        return None
    return RLImage(io.BytesIO(data), width=IMAGE_WIDTH, height=IMAGE_HEIGHT)


def export_pdf(deck: Sequence[Slide], title: str = "Presentation") -> bytes:
    """Render ``deck`` into an A4 PDF, one page per deck entry."""
    slides = copy_deck(list(deck))
    font_path = get_settings().pdf_font_path
    fonts = get_pdf_fonts(str(font_path) if font_path else None)
    styles = _styles(fonts)

    def paragraph(text: str, style: str) -> Paragraph:
        return Paragraph(font_markup(text, fonts), styles[style])

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=title,
    )
    
    story = []
    for index, slide in enumerate(slides):
        if index > 0:
            story.append(PageBreak())
        
        page = []
        if slide.image:
            image = _image(slide.image)
            if image is not None:
                page.extend([image, Spacer(1, 10 * mm)])
        
        page.append(paragraph(slide.title, "title"))
        if slide.subtitle:
            page.append(paragraph(slide.subtitle, "subtitle"))
        if slide.content:
            page.append(Spacer(1, 4 * mm))
            page.append(paragraph(strip_markdown(slide.content), "body"))
        
        story.append(KeepInFrame(doc.width - FRAME_PADDING, doc.height - FRAME_PADDING, page, mode="shrink"))
    
    doc.build(story)
    logger.info(f"📄 Exported {len(slides)} slides to PDF")
    return buffer.getvalue()
