"""Durable history of past sessions."""

from .store import HistoryStore, get_history_store

__all__ = [
    "HistoryStore",
    "get_history_store",
]
