"""
History Store.

Persists session snapshots to a JSON file as one ordered array under a single
key. Writes are debounced per session id: rapid updates to the same session
coalesce into one write after a quiet period, and a save whose
(id, message count, prompt, slide count) tuple did not change is skipped.
"""

import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from src.core import get_settings
from src.models.session import Session

logger = logging.getLogger(__name__)

STORAGE_KEY = "slide_history"

PersistKey = tuple[str, int, str, int]


def _local_date(timestamp: datetime) -> date:
    if timestamp.tzinfo is not None:
        return timestamp.astimezone().date()
    return timestamp.date()


class HistoryStore:
    """JSON-file backed store of past sessions, most recent first."""

    def __init__(self, path: Optional[Path] = None, debounce_seconds: Optional[float] = None):
        settings = get_settings()
        self._path = Path(path) if path is not None else settings.history_file
        self._debounce = settings.history_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._lock = asyncio.Lock()
        self._pending: dict[str, Session] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._last_saved: dict[str, PersistKey] = {}

    @property
    def path(self) -> Path:
        return self._path

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def load(self) -> list[Session]:
        """Load all valid sessions; corrupt entries are dropped."""
        sessions = []
        for entry in self._read_entries():
            try:
                sessions.append(Session.model_validate(entry))
            except ValidationError as e:
                logger.debug(f"Skipping unreadable history entry: {e}")
        return sessions

    def get(self, session_id: str) -> Optional[Session]:
        return next((s for s in self.load() if s.id == session_id), None)

    def grouped(self, now: Optional[datetime] = None) -> dict[str, list[Session]]:
        """Split sessions into today and earlier, keeping stored order."""
        today = _local_date(now or datetime.now())
        groups: dict[str, list[Session]] = {"today": [], "earlier": []}
        for session in self.load():
            key = "today" if _local_date(session.timestamp) >= today else "earlier"
            groups[key].append(session)
        return groups

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def save(self, session: Session) -> bool:
        """
        Schedule a debounced write of ``session``.

        Returns False when the session is incomplete or unchanged since the
        last persisted (or pending) snapshot for its id. Must be called from
        a running event loop.
        """
        if not session.is_complete:
            return False

        key = session.persist_key
        pending = self._pending.get(session.id)
        reference = pending.persist_key if pending is not None else self._last_saved.get(session.id)
        if key == reference:
            return False

        self._pending[session.id] = session.model_copy(deep=True)
        self._restart_timer(session.id)
        return True

    def mark_loaded(self, session: Session) -> None:
        """Remember a snapshot loaded back into a controller so it is not re-saved."""
        self._last_saved[session.id] = session.persist_key

    async def flush(self, session_id: Optional[str] = None) -> int:
        """Write pending snapshots now; returns the number written."""
        ids = [session_id] if session_id is not None else list(self._pending)
        written = 0
        for sid in ids:
            timer = self._timers.pop(sid, None)
            if timer is not None and timer is not asyncio.current_task():
                timer.cancel()
            if await self._write_pending(sid):
                written += 1
        return written

    async def delete(self, session_id: str) -> bool:
        """Remove one session; returns False when it was not stored."""
        self._discard_pending(session_id)
        self._last_saved.pop(session_id, None)

        async with self._lock:
            entries = self._read_entries()
            remaining = [e for e in entries if e.get("id") != session_id]
            if len(remaining) == len(entries):
                return False
            await asyncio.to_thread(self._write_entries, remaining)

        logger.info(f"🗑️ Deleted history entry {session_id}")
        return True

    async def clear(self) -> None:
        """Remove every stored session."""
        for sid in list(self._pending):
            self._discard_pending(sid)
        self._last_saved.clear()

        async with self._lock:
            if self._path.exists():
                await asyncio.to_thread(self._path.unlink)

        logger.info("🧹 Cleared presentation history")

    def attach(self, controller) -> Callable[[], None]:
        """Save every complete snapshot a session controller publishes."""
        from src.services.session.transitions import to_session

        def on_state(state) -> None:
            session = to_session(state)
            if session is not None:
                self.save(session)

        return controller.subscribe(on_state)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _restart_timer(self, session_id: str) -> None:
        timer = self._timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()
        self._timers[session_id] = asyncio.create_task(self._flush_later(session_id))

    async def _flush_later(self, session_id: str) -> None:
        await asyncio.sleep(self._debounce)
        if self._timers.get(session_id) is asyncio.current_task():
            del self._timers[session_id]
        await self._write_pending(session_id)

    def _discard_pending(self, session_id: str) -> None:
        self._pending.pop(session_id, None)
        timer = self._timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()

    async def _write_pending(self, session_id: str) -> bool:
        async with self._lock:
            session = self._pending.pop(session_id, None)
            if session is None:
                return False

            entries = self._read_entries()
            snapshot = session.model_dump(mode="json")
            index = next((i for i, e in enumerate(entries) if e.get("id") == session.id), None)

            if index is None:
                entries.insert(0, snapshot)
            else:
                snapshot["prompt"] = entries[index].get("prompt") or snapshot["prompt"]
                entries[index] = snapshot

            await asyncio.to_thread(self._write_entries, entries)
            self._last_saved[session.id] = session.persist_key

        logger.info(f"💾 Saved session {session.id} ({len(session.slides)} slides)")
        return True

    def _read_entries(self) -> list[dict]:
        """Raw entries that carry the required id and prompt."""
        if not self._path.exists():
            return []

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading chat history: {e}")
            return []

        entries = data.get(STORAGE_KEY, []) if isinstance(data, dict) else []
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, dict) and e.get("id") and e.get("prompt")]

    def _write_entries(self, entries: list[dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps({STORAGE_KEY: entries}, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)


_history_store: Optional[HistoryStore] = None


def get_history_store() -> HistoryStore:
    """Get the singleton history store instance."""
    global _history_store
    if _history_store is None:
        _history_store = HistoryStore()
    return _history_store
