from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .constants import UNTITLED_BRIEF
from .state import create_session, derive_title, load_collection, save_collection
from .types import BriefId, SavedBrief

logger = logging.getLogger(__name__)

_UPDATABLE = (
    "data",
    "messages",
    "phase",
    "status",
    "completed_phases",
    "knowledge_check_result",
)


class BriefStore:
    """
    Keyed collection of saved briefs, most-recently-created first.

    The whole collection is written on every mutation. Disk failures are logged
    and swallowed: the in-memory list stays authoritative for the running app.
    """

    def __init__(self, path: Optional[str] = None, *, autoload: bool = True):
        self.path = path
        self._briefs: List[SavedBrief] = []
        self.current_id: Optional[BriefId] = None
        if autoload and path:
            self.load()

    # -----------------------------
    # Load / save (whole collection)
    # -----------------------------
    def load(self) -> None:
        if not self.path:
            return
        try:
            self._briefs = load_collection(self.path)
        except Exception:
            logger.exception("Failed to load briefs from %s", self.path)
            self._briefs = []
        self.current_id = self._briefs[0].id if self._briefs else None

    def save(self) -> bool:
        if not self.path:
            return False
        try:
            save_collection(self.path, self._briefs)
            return True
        except Exception:
            logger.exception("Failed to save briefs to %s", self.path)
            return False

    # -----------------------------
    # Queries
    # -----------------------------
    def list(self) -> List[SavedBrief]:
        return list(self._briefs)

    def get(self, brief_id: BriefId) -> Optional[SavedBrief]:
        for b in self._briefs:
            if b.id == brief_id:
                return b
        return None

    @property
    def current(self) -> Optional[SavedBrief]:
        if self.current_id is None:
            return None
        return self.get(self.current_id)

    def select(self, brief_id: Optional[BriefId]) -> Optional[SavedBrief]:
        if brief_id is not None and self.get(brief_id) is None:
            raise KeyError(brief_id)
        self.current_id = brief_id
        return self.current

    # -----------------------------
    # Mutations
    # -----------------------------
    def create(self) -> SavedBrief:
        brief = create_session()
        self._briefs.insert(0, brief)
        self.current_id = brief.id
        self.save()
        return brief

    def update(self, brief_id: BriefId, **updates: Any) -> Optional[SavedBrief]:
        """
        Merges the given fields into the stored brief, stamps updated_at and
        recomputes the title from the business problem.
        Unknown brief ids are ignored (the brief may have been deleted meanwhile).
        """
        unknown = set(updates) - set(_UPDATABLE)
        if unknown:
            raise TypeError(f"Cannot update: {sorted(unknown)}")

        brief = self.get(brief_id)
        if brief is None:
            logger.warning("update() for unknown brief %s ignored", brief_id)
            return None

        previous_problem = brief.data.business_problem
        for k, v in updates.items():
            setattr(brief, k, v)

        brief.updated_at = datetime.now(timezone.utc)

        new_data = updates.get("data")
        brief.title = (
            (derive_title(new_data.business_problem) if new_data is not None else "")
            or derive_title(previous_problem)
            or brief.title
            or UNTITLED_BRIEF
        )

        self.save()
        return brief

    def delete(self, brief_id: BriefId) -> None:
        self._briefs = [b for b in self._briefs if b.id != brief_id]
        if self.current_id == brief_id:
            self.current_id = self._briefs[0].id if self._briefs else None
        self.save()


class Autosaver:
    """
    Debounced flush: every mark_dirty() cancels the pending timer and starts a
    new one, so only the last state after a quiet period is written.
    """

    def __init__(
        self,
        flush_fn: Callable[[], None],
        delay: float = 1.0,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.flush_fn = flush_fn
        self.delay = delay
        self.timer_factory = timer_factory
        self.dirty = False
        self._timer = None
        self._lock = threading.RLock()

    def mark_dirty(self) -> None:
        with self._lock:
            self.dirty = True
            self._cancel_timer()
            self._timer = self.timer_factory(self.delay, self.flush)
            if hasattr(self._timer, "daemon"):
                self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        with self._lock:
            self._cancel_timer()
            if not self.dirty:
                return False
            self.dirty = False

        # flush_fn may take the owner's lock; never call it while holding ours
        try:
            self.flush_fn()
        except Exception:
            logger.exception("Autosave flush failed")
            return False
        return True

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self.dirty = False

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


def snapshot_updates(session: SavedBrief, status: str) -> Dict[str, Any]:
    """Copies of the mutable parts of a working session, ready for BriefStore.update()."""
    return {
        "data": session.data.copy(),
        "messages": list(session.messages),
        "phase": session.phase,
        "status": status,
        "completed_phases": list(session.completed_phases),
        "knowledge_check_result": session.knowledge_check_result,
    }
