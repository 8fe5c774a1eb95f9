"""
Session Controller.

Drives the session state machine on the event loop: accepts prompts, runs one
dispatcher call at a time, animates the thinking steps, and counts down the
retry gate after an overloaded response. All state changes go through the
pure functions in ``transitions`` and are published to subscribers.
"""

import asyncio
import logging
import uuid
from typing import Callable, Optional, Sequence

from src.core import get_settings
from src.models.session import FileRef, Session
from src.services.generation import PromptDispatcher, get_prompt_dispatcher
from src.services.generation.errors import ErrorCategory
from src.services.generation.fallback import fallback_message, synthesize_fallback_deck
from src.services.generation.outcome import FatalFailure

from . import transitions
from .state import SessionPhase, SessionState

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState], None]


def _new_session_id() -> str:
    return uuid.uuid4().hex


def _new_seed_token() -> str:
    return uuid.uuid4().hex[:12]


def _history_before_prompt(state: SessionState) -> list:
    """Messages that precede the user message of the current turn."""
    for i in range(len(state.messages) - 1, -1, -1):
        if state.messages[i].sender == "user":
            return list(state.messages[:i])
    return list(state.messages)


class SessionController:
    """Owns the state of one conversation and sequences its turns."""

    def __init__(
        self,
        dispatcher: Optional[PromptDispatcher] = None,
        *,
        thinking_tick: Optional[float] = None,
        countdown_tick: Optional[float] = None,
        id_factory: Callable[[], str] = _new_session_id,
        seed_factory: Callable[[], str] = _new_seed_token,
    ):
        settings = get_settings()
        self._dispatcher = dispatcher or get_prompt_dispatcher()
        self._thinking_tick = settings.thinking_tick_seconds if thinking_tick is None else thinking_tick
        self._countdown_tick = settings.countdown_tick_seconds if countdown_tick is None else countdown_tick
        self._id_factory = id_factory
        self._seed_factory = seed_factory
        self._state = SessionState()
        self._subscribers: list[StateCallback] = []
        self._thinking_task: Optional[asyncio.Task] = None
        self._countdown_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Register a callback for every new state; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    async def submit(self, text: str, attachments: Sequence[FileRef] = ()) -> bool:
        """
        Run one turn for ``text``.

        Returns False without touching the state while a generation is in
        flight or when there is nothing to send.
        """
        if not transitions.can_submit(self._state, text, attachments):
            logger.debug("Submission rejected")
            return False

        self._cancel_countdown()
        self._set_state(transitions.begin_turn(self._state, text, attachments))
        await self._run_turn()
        return True

    async def retry(self) -> bool:
        """Re-send the failed prompt once the retry countdown has elapsed."""
        if not self._state.can_retry:
            return False

        self._cancel_countdown()
        self._set_state(transitions.begin_retry(self._state))
        await self._run_turn()
        return True

    def reset(self) -> bool:
        """Start a new chat."""
        if self._state.is_busy:
            return False
        self._cancel_countdown()
        self._set_state(transitions.reset())
        return True

    def load(self, session: Session) -> bool:
        """Display a session restored from history."""
        if self._state.is_busy:
            return False
        self._cancel_countdown()
        self._set_state(transitions.load_session(session))
        return True

    # -------------------------------------------------------------------------
    # Slide editing
    # -------------------------------------------------------------------------

    def edit_slide(self, index: int, **changes: str) -> bool:
        """Replace the title, subtitle or content of one slide."""
        return self._apply_edit(transitions.replace_slide(self._state, index, **changes))

    def add_slide(self) -> bool:
        return self._apply_edit(transitions.add_slide(self._state, self._seed_factory()))

    def delete_slide(self, index: int) -> bool:
        return self._apply_edit(transitions.delete_slide(self._state, index))

    def duplicate_slide(self, index: int) -> bool:
        return self._apply_edit(transitions.duplicate_slide(self._state, index))

    def move_slide(self, from_index: int, to_index: int) -> bool:
        return self._apply_edit(transitions.move_slide(self._state, from_index, to_index))

    def regenerate_image(self, index: int) -> bool:
        return self._apply_edit(transitions.regenerate_image(self._state, index, self._seed_factory()))

    def _apply_edit(self, state: SessionState) -> bool:
        if state is self._state:
            logger.debug("Slide edit rejected")
            return False
        self._set_state(state)
        return True

    async def close(self) -> None:
        """Cancel background timers."""
        self._cancel_countdown()
        await self._stop_thinking()

    # -------------------------------------------------------------------------
    # Turn execution
    # -------------------------------------------------------------------------

    async def _run_turn(self) -> None:
        self._thinking_task = asyncio.create_task(self._animate_thinking())
        try:
            outcome = await self._dispatch()
        finally:
            await self._stop_thinking()

        self._set_state(transitions.apply_outcome(self._state, outcome, self._id_factory()))

        error = self._state.error
        if error is not None and error.retryable and error.retry_remaining > 0:
            self._countdown_task = asyncio.create_task(self._run_countdown())

    async def _dispatch(self):
        state = self._state
        try:
            if state.last_action == "revise":
                return await self._dispatcher.revise(
                    state.last_prompt,
                    list(state.deck),
                    topic=state.prompt,
                )
            return await self._dispatcher.generate(state.last_prompt, _history_before_prompt(state))
        except Exception as e:
            logger.exception(f"Unexpected dispatcher error: {e}")
            fallback = list(state.deck) if state.last_action == "revise" and state.deck else None
            return FatalFailure(
                reason=f"Failed to generate slides: {e}",
                category=ErrorCategory.UNKNOWN,
                details=str(e),
                fallback_deck=fallback or synthesize_fallback_deck(state.last_prompt),
                fallback_message=fallback_message(state.last_prompt),
            )

    async def _animate_thinking(self) -> None:
        while self._state.thinking and self._state.phase is SessionPhase.AWAITING_GENERATION:
            await asyncio.sleep(self._thinking_tick)
            advanced = transitions.advance_thinking(self._state)
            if advanced is self._state:
                return
            self._set_state(advanced)

    async def _stop_thinking(self) -> None:
        task, self._thinking_task = self._thinking_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_countdown(self) -> None:
        while self._state.error is not None and self._state.error.retry_remaining > 0:
            await asyncio.sleep(self._countdown_tick)
            self._set_state(transitions.tick_countdown(self._state))

    def _cancel_countdown(self) -> None:
        task, self._countdown_task = self._countdown_task, None
        if task is not None and not task.done():
            task.cancel()
        cancelled = transitions.cancel_countdown(self._state)
        if cancelled is not self._state:
            self._set_state(cancelled)

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"State subscriber failed: {e}")
