"""Service layer for SlideCraft."""

from .generation import PromptDispatcher, get_prompt_dispatcher
from .history import HistoryStore, get_history_store
from .session import SessionController

__all__ = [
    "PromptDispatcher",
    "get_prompt_dispatcher",
    "HistoryStore",
    "get_history_store",
    "SessionController",
]
