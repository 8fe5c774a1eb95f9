"""Document export of slide decks."""

from .markup import strip_markdown, export_filename
from .pptx import export_pptx, PPTX_MEDIA_TYPE
from .pdf import export_pdf, PDF_MEDIA_TYPE

__all__ = [
    "strip_markdown",
    "export_filename",
    "export_pptx",
    "export_pdf",
    "PPTX_MEDIA_TYPE",
    "PDF_MEDIA_TYPE",
]
