"""Session history API endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.services import get_history_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("")
async def list_history() -> dict[str, Any]:
    """List stored sessions split into today and earlier, most recent first."""
    groups = get_history_store().grouped()
    return {
        "today": [s.model_dump(mode="json") for s in groups["today"]],
        "earlier": [s.model_dump(mode="json") for s in groups["earlier"]],
        "total": len(groups["today"]) + len(groups["earlier"]),
    }


@router.get("/{session_id}")
async def get_history_item(session_id: str) -> dict[str, Any]:
    """Get one stored session."""
    session = get_history_store().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.model_dump(mode="json")


@router.delete("/{session_id}")
async def delete_history_item(session_id: str) -> dict[str, Any]:
    """Delete one stored session."""
    if not await get_history_store().delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"deleted": session_id}


@router.delete("")
async def clear_history() -> dict[str, Any]:
    """Delete every stored session."""
    await get_history_store().clear()
    return {"cleared": True}
