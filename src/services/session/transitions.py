"""Pure transition functions for the session state machine."""

from datetime import datetime
from typing import Optional, Sequence, Union

from src.models.session import FileRef, Message, Session
from src.models.slide import Slide, copy_deck
from src.services.generation.normalizer import IMAGE_URL_TEMPLATE, image_seed
from src.services.generation.outcome import FatalFailure, GenerationSuccess, RetryableFailure

from .state import (
    ErrorBanner,
    SessionPhase,
    SessionState,
    StepStatus,
    ThinkingStep,
    TurnAction,
)

Outcome = Union[GenerationSuccess, RetryableFailure, FatalFailure]


def default_ai_message(prompt: str) -> str:
    return (
        f"I've created an informative presentation about {prompt}. The slides contain "
        "detailed information about the topic, including key concepts, applications, "
        "and future outlook. You can view the slides on the right."
    )


def initial_thinking_steps(prompt: str) -> tuple[ThinkingStep, ...]:
    return (
        ThinkingStep(
            title="Understanding your request",
            description=f'Analyzing your request about "{prompt}"',
            status=StepStatus.COMPLETED,
        ),
        ThinkingStep(title="Connecting to AI", description="Establishing connection to the AI model"),
        ThinkingStep(title="Generating content", description="Creating slide content based on your topic"),
        ThinkingStep(title="Formatting slides", description="Structuring the presentation with proper formatting"),
    )


def can_submit(state: SessionState, text: str, attachments: Sequence[FileRef] = ()) -> bool:
    """A prompt is accepted only when nothing is in flight and there is input."""
    if state.is_busy:
        return False
    return bool(text.strip() or attachments)


def compose_user_text(text: str, attachments: Sequence[FileRef] = ()) -> str:
    if not attachments:
        return text
    names = ", ".join(f.name for f in attachments)
    if text:
        return f"{text}\n\nAttached files: {names}"
    return f"Attached files: {names}"


def next_action(state: SessionState) -> TurnAction:
    """Revise the displayed deck when there is one, otherwise generate."""
    return "revise" if state.deck else "generate"


def begin_turn(
    state: SessionState,
    text: str,
    attachments: Sequence[FileRef] = (),
) -> SessionState:
    """Append the user message and enter AwaitingGeneration."""
    message = Message(
        sender="user",
        text=compose_user_text(text.strip(), attachments),
        attachments=list(attachments),
    )
    prompt = text.strip() or message.text
    return state.model_copy(update={
        "phase": SessionPhase.AWAITING_GENERATION,
        "prompt": state.prompt or prompt,
        "last_prompt": prompt,
        "last_action": next_action(state),
        "messages": state.messages + (message,),
        "thinking": initial_thinking_steps(prompt),
        "error": None,
    })


def begin_retry(state: SessionState) -> SessionState:
    """Re-enter AwaitingGeneration with the prompt of the failed turn."""
    return state.model_copy(update={
        "phase": SessionPhase.AWAITING_GENERATION,
        "thinking": initial_thinking_steps(state.last_prompt),
        "error": None,
        "retry_count": state.retry_count + 1,
    })


def advance_thinking(state: SessionState) -> SessionState:
    """Complete the running step and start the next one."""
    steps = list(state.thinking)
    if not steps:
        return state
    
    running = next((i for i, s in enumerate(steps) if s.status is StepStatus.IN_PROGRESS), None)
    if running is None:
        pending = next((i for i, s in enumerate(steps) if s.status is StepStatus.PENDING), None)
        if pending is None:
            return state
        steps[pending] = steps[pending].model_copy(update={"status": StepStatus.IN_PROGRESS})
    else:
        steps[running] = steps[running].model_copy(update={"status": StepStatus.COMPLETED})
        if running + 1 < len(steps):
            steps[running + 1] = steps[running + 1].model_copy(update={"status": StepStatus.IN_PROGRESS})
    
    return state.model_copy(update={"thinking": tuple(steps)})


def apply_outcome(state: SessionState, outcome: Outcome, new_session_id: str) -> SessionState:
    """
    Reconcile a dispatcher outcome into the state.
    
    Both branches append an AI message and carry a non-empty deck, so the
    conversation never shows a gap.
    """
    update = {
        "session_id": state.session_id or new_session_id,
        "thinking": (),
    }
    
    if isinstance(outcome, GenerationSuccess):
        text = outcome.message or default_ai_message(state.last_prompt)
        update.update({
            "phase": SessionPhase.DISPLAYING,
            "deck": tuple(copy_deck(outcome.deck)),
            "messages": state.messages + (Message(sender="ai", text=text),),
            "error": None,
            "retry_count": 0,
        })
    else:
        retryable = isinstance(outcome, RetryableFailure)
        update.update({
            "phase": SessionPhase.ERRORING,
            "deck": tuple(copy_deck(outcome.fallback_deck)),
            "messages": state.messages + (Message(sender="ai", text=outcome.fallback_message),),
            "error": ErrorBanner(
                reason=outcome.reason,
                category=outcome.category,
                retryable=retryable,
                details="" if retryable else outcome.details,
                retry_remaining=outcome.delay_seconds if retryable else 0,
            ),
        })
    
    return state.model_copy(update=update)


def tick_countdown(state: SessionState) -> SessionState:
    """Take one second off the retry countdown."""
    if state.error is None or state.error.retry_remaining <= 0:
        return state
    error = state.error.model_copy(update={"retry_remaining": state.error.retry_remaining - 1})
    return state.model_copy(update={"error": error})


def cancel_countdown(state: SessionState) -> SessionState:
    if state.error is None or state.error.retry_remaining == 0:
        return state
    return state.model_copy(update={"error": state.error.model_copy(update={"retry_remaining": 0})})


def reset() -> SessionState:
    return SessionState()


def load_session(session: Session) -> SessionState:
    """Display a session restored from history."""
    return SessionState(
        phase=SessionPhase.DISPLAYING,
        session_id=session.id,
        prompt=session.prompt,
        last_prompt=session.prompt,
        messages=tuple(session.messages),
        deck=tuple(copy_deck(session.slides)),
    )


def persist_key(state: SessionState) -> Optional[tuple[str, int, str, int]]:
    """Idempotence key, or None while the session is not yet complete."""
    if not (state.session_id and state.prompt and state.messages and state.deck):
        return None
    return (state.session_id, len(state.messages), state.prompt, len(state.deck))


def to_session(state: SessionState, timestamp: Optional[datetime] = None) -> Optional[Session]:
    """Serializable snapshot for the history store, or None when incomplete."""
    if persist_key(state) is None:
        return None
    return Session(
        id=state.session_id,
        prompt=state.prompt,
        slides=copy_deck(list(state.deck)),
        messages=[m.model_copy(deep=True) for m in state.messages],
        timestamp=timestamp or datetime.now(),
    )


# -----------------------------------------------------------------------------
# Slide editing
#
# Each edit returns the same state object when it is rejected: while a
# generation is in flight, when no deck is displayed, for an out-of-range
# index, or when it would leave the deck empty.
# -----------------------------------------------------------------------------

EDITABLE_FIELDS = frozenset({"title", "subtitle", "content"})

NEW_SLIDE_TITLE = "New Slide"
NEW_SLIDE_SUBTITLE = "Enter subtitle here"
NEW_SLIDE_CONTENT = "Add your content here..."
COPY_SUFFIX = " (Copy)"


def can_edit(state: SessionState) -> bool:
    return not state.is_busy and bool(state.deck)


def _valid_index(state: SessionState, index: int) -> bool:
    return 0 <= index < len(state.deck)


def _with_deck(state: SessionState, slides: list[Slide]) -> SessionState:
    return state.model_copy(update={"deck": tuple(slides)})


def replace_slide(state: SessionState, index: int, **changes: str) -> SessionState:
    """Overwrite the title, subtitle or content of one slide."""
    if not can_edit(state) or not _valid_index(state, index):
        return state
    if not changes or not set(changes) <= EDITABLE_FIELDS:
        return state
    
    slides = copy_deck(list(state.deck))
    slides[index] = slides[index].model_copy(update=changes)
    return _with_deck(state, slides)


def add_slide(state: SessionState, seed_token: str) -> SessionState:
    """Append a placeholder content slide."""
    if not can_edit(state):
        return state
    
    slide = Slide(
        title=NEW_SLIDE_TITLE,
        subtitle=NEW_SLIDE_SUBTITLE,
        content=NEW_SLIDE_CONTENT,
        type="content",
        image=IMAGE_URL_TEMPLATE.format(seed=f"new-slide-{seed_token}"),
        layout="content",
    )
    return _with_deck(state, copy_deck(list(state.deck)) + [slide])


def delete_slide(state: SessionState, index: int) -> SessionState:
    """Remove one slide; the last remaining slide cannot be deleted."""
    if not can_edit(state) or not _valid_index(state, index) or len(state.deck) == 1:
        return state
    
    slides = copy_deck(list(state.deck))
    del slides[index]
    return _with_deck(state, slides)


def duplicate_slide(state: SessionState, index: int) -> SessionState:
    """Insert a copy of one slide right after it."""
    if not can_edit(state) or not _valid_index(state, index):
        return state
    
    slides = copy_deck(list(state.deck))
    original = slides[index]
    slides.insert(index + 1, original.model_copy(update={"title": original.title + COPY_SUFFIX}))
    return _with_deck(state, slides)


def move_slide(state: SessionState, from_index: int, to_index: int) -> SessionState:
    """Move one slide so that it ends up at ``to_index``."""
    if not can_edit(state) or not _valid_index(state, from_index) or not _valid_index(state, to_index):
        return state
    if from_index == to_index:
        return state
    
    slides = copy_deck(list(state.deck))
    slides.insert(to_index, slides.pop(from_index))
    return _with_deck(state, slides)


def regenerate_image(state: SessionState, index: int, seed_token: str) -> SessionState:
    """Give one slide a fresh image derived from its title."""
    if not can_edit(state) or not _valid_index(state, index):
        return state
    
    slides = copy_deck(list(state.deck))
    seed = image_seed(slides[index].title, seed_token)
    slides[index] = slides[index].model_copy(update={"image": IMAGE_URL_TEMPLATE.format(seed=seed)})
    return _with_deck(state, slides)
