"""Document export API endpoints."""
import asyncio
import logging
from typing import Literal, Sequence
from urllib.parse import quote

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from src.models.slide import Slide
from src.services.export import (
    PDF_MEDIA_TYPE,
    PPTX_MEDIA_TYPE,
    export_filename,
    export_pdf,
    export_pptx,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/export", tags=["export"])

ExportFormat = Literal["pptx", "pdf"]


class ExportRequest(BaseModel):
    """Request payload for document export."""
    
    slides: list[Slide] = Field(..., description="Deck to export")
    prompt: str = Field(default="", description="Active prompt, used for the filename")


async def document_response(slides: Sequence[Slide], prompt: str, fmt: ExportFormat) -> Response:
    """
    Render ``slides`` and return them as a file download.
    
    Rendering fetches slide images over the network, so it runs in a worker
    thread to keep the event loop serving other requests.
    """
    if not slides:
        raise HTTPException(status_code=400, detail="No slides to export")
    
    if fmt == "pptx":
        content = await asyncio.to_thread(export_pptx, slides)
        media_type = PPTX_MEDIA_TYPE
    else:
        content = await asyncio.to_thread(export_pdf, slides, prompt or "Presentation")
        media_type = PDF_MEDIA_TYPE
    
    filename = export_filename(prompt, fmt)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.post("/{fmt}")
async def export_deck(fmt: ExportFormat, request: ExportRequest) -> Response:
    """Download a deck as PPTX or PDF."""
    return await document_response(request.slides, request.prompt, fmt)
