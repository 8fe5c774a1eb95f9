"""API routes for SlideCraft."""

from .routes import slides, sessions, history, export

__all__ = [
    "slides",
    "sessions",
    "history",
    "export",
]
