"""Session API endpoints driving the conversation state machine."""
import asyncio
import json
import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from src.models.session import FileRef
from src.services import SessionController, get_history_store

from .export import ExportFormat, document_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])

# Controller storage (in production, use Redis or database)
session_controllers: dict[str, SessionController] = {}


class MessageRequest(BaseModel):
    """Request payload for a new user prompt."""
    
    text: str = Field(default="", max_length=10000, description="User prompt")
    attachments: list[FileRef] = Field(default_factory=list, description="Attached file metadata")


def _get_controller(key: str) -> SessionController:
    if key not in session_controllers:
        raise HTTPException(status_code=404, detail="Session not found")
    return session_controllers[key]


def create_controller() -> tuple[str, SessionController]:
    key = str(uuid.uuid4())
    controller = SessionController()
    get_history_store().attach(controller)
    session_controllers[key] = controller
    return key, controller


@router.post("")
async def create_session() -> dict[str, Any]:
    """Start a new conversation."""
    key, controller = create_controller()
    return {"key": key, "state": controller.state.to_dict()}


@router.get("/{key}")
async def get_session(key: str) -> dict[str, Any]:
    """Get the current state of a conversation."""
    return _get_controller(key).state.to_dict()


@router.post("/{key}/messages")
async def post_message(key: str, request: MessageRequest) -> dict[str, Any]:
    """
    Send a prompt and wait for the turn to finish.
    
    Returns 409 while another generation is in flight and 400 for empty input.
    """
    controller = _get_controller(key)
    if controller.state.is_busy:
        raise HTTPException(status_code=409, detail="A generation is already in progress")
    
    if not await controller.submit(request.text, request.attachments):
        raise HTTPException(status_code=400, detail="Message text or attachments are required")
    return controller.state.to_dict()


@router.post("/{key}/retry")
async def retry(key: str) -> dict[str, Any]:
    """Retry the last failed prompt once its countdown elapsed."""
    controller = _get_controller(key)
    if not await controller.retry():
        raise HTTPException(status_code=409, detail="Retry is not available")
    return controller.state.to_dict()


@router.post("/{key}/reset")
async def reset(key: str) -> dict[str, Any]:
    """Start a new chat in the same conversation slot."""
    controller = _get_controller(key)
    if not controller.reset():
        raise HTTPException(status_code=409, detail="A generation is already in progress")
    return controller.state.to_dict()


@router.post("/{key}/load/{history_id}")
async def load_history(key: str, history_id: str) -> dict[str, Any]:
    """Restore a stored session into the conversation."""
    controller = _get_controller(key)
    store = get_history_store()
    session = store.get(history_id)
    if session is None:
        raise HTTPException(status_code=404, detail="History entry not found")
    
    store.mark_loaded(session)
    if not controller.load(session):
        raise HTTPException(status_code=409, detail="A generation is already in progress")
    return controller.state.to_dict()


@router.delete("/{key}")
async def delete_session(key: str) -> dict[str, Any]:
    """Close a conversation and write out its pending history entry."""
    controller = _get_controller(key)
    session_controllers.pop(key, None)
    await controller.close()

    session_id = controller.state.session_id
    if session_id:
        await get_history_store().flush(session_id)
    logger.info(f"🗑️ Closed session {key}")
    return {"deleted": key}


# =============================================================================
# Slide editing
# =============================================================================

class SlideUpdate(BaseModel):
    """Fields to change on one slide; omitted fields are kept."""

    title: Optional[str] = Field(default=None, description="New slide title")
    subtitle: Optional[str] = Field(default=None, description="New slide subtitle")
    content: Optional[str] = Field(default=None, description="New markdown content")


class SlideMove(BaseModel):
    """Target position for a dragged slide."""

    to: int = Field(..., ge=0, description="Index the slide should end up at")


def _apply_slide_edit(controller: SessionController, applied: bool) -> dict[str, Any]:
    if not applied:
        raise HTTPException(status_code=400, detail="Invalid slide operation")
    return controller.state.to_dict()


def _editable_controller(key: str) -> SessionController:
    controller = _get_controller(key)
    if controller.state.is_busy:
        raise HTTPException(status_code=409, detail="A generation is already in progress")
    return controller


@router.put("/{key}/slides/{index}")
async def update_slide(key: str, index: int, request: SlideUpdate) -> dict[str, Any]:
    """Save the edited title, subtitle or content of one slide."""
    controller = _editable_controller(key)
    changes = request.model_dump(exclude_none=True)
    return _apply_slide_edit(controller, controller.edit_slide(index, **changes))


@router.post("/{key}/slides")
async def add_slide(key: str) -> dict[str, Any]:
    """Append a placeholder slide."""
    controller = _editable_controller(key)
    return _apply_slide_edit(controller, controller.add_slide())


@router.delete("/{key}/slides/{index}")
async def delete_slide(key: str, index: int) -> dict[str, Any]:
    """Remove one slide; the last remaining slide cannot be deleted."""
    controller = _editable_controller(key)
    return _apply_slide_edit(controller, controller.delete_slide(index))


@router.post("/{key}/slides/{index}/duplicate")
async def duplicate_slide(key: str, index: int) -> dict[str, Any]:
    controller = _editable_controller(key)
    return _apply_slide_edit(controller, controller.duplicate_slide(index))


@router.post("/{key}/slides/{index}/move")
async def move_slide(key: str, index: int, request: SlideMove) -> dict[str, Any]:
    controller = _editable_controller(key)
    return _apply_slide_edit(controller, controller.move_slide(index, request.to))


@router.post("/{key}/slides/{index}/image")
async def regenerate_image(key: str, index: int) -> dict[str, Any]:
    """Give one slide a fresh image."""
    controller = _editable_controller(key)
    return _apply_slide_edit(controller, controller.regenerate_image(index))


@router.get("/{key}/export/{fmt}")
async def export_session(key: str, fmt: ExportFormat) -> Response:
    """Download the displayed deck."""
    state = _get_controller(key).state
    return await document_response(list(state.deck), state.prompt, fmt)


@router.get("/{key}/events")
async def session_events(key: str) -> EventSourceResponse:
    """
    SSE stream of state snapshots.
    
    Emits the current state first, then one ``state`` event per transition
    (thinking progress, countdown ticks, results).
    """
    controller = _get_controller(key)
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = controller.subscribe(queue.put_nowait)
    
    async def event_generator():
        try:
            state = controller.state
            while True:
                yield {
                    "event": "state",
                    "data": json.dumps(state.to_dict()),
                }
                state = await queue.get()
        finally:
            unsubscribe()
    
    return EventSourceResponse(event_generator())
