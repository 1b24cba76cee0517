from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..documents.brief_parser import BriefParser
from ..export.exporter_docx import export_docx_file
from ..export.exporter_md import export_markdown_file, render_markdown
from ..llm.client import LLMClient
from ..llm.coach import Coach
from .bootstrap import ensure_data_dirs
from .config import autosave_delay_sec, briefs_path, exports_dir, use_llm
from .errors import BriefingError
from .flow import BriefingFlow, timer_scheduler
from .knowledge_check import STATUS_TEXT, confidence_band, status_display
from .state import derive_title
from .store import Autosaver, BriefStore, snapshot_updates
from .types import SavedBrief

logger = logging.getLogger(__name__)

# NOTE:
# This module is the main integration point for the UI.
# Behavior is controlled via environment variables:
# - USE_LLM=0 -> stub mode (canned coaching replies, nothing extracted)
# - USE_LLM=1 -> LLM-enabled coaching + extraction


def format_relative_time(when: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    seconds = (now - when).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return when.strftime("%Y-%m-%d")


class BriefingWorkspace:
    """
    Owns the store, the autosaver and the flow of the current brief.

    Every public method returns a UI payload dict; input and collaborator
    errors come back in payload["error"] instead of being raised.
    """

    def __init__(
        self,
        store: Optional[BriefStore] = None,
        coach: Optional[Coach] = None,
        parser: Optional[BriefParser] = None,
        *,
        autosave_delay: Optional[float] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        scheduler=timer_scheduler,
    ):
        if store is None:
            ensure_data_dirs()
            store = BriefStore(briefs_path())
        self.store = store

        llm = None
        if coach is None or parser is None:
            llm = LLMClient()
        self.coach = coach or Coach(llm)
        self.parser = parser or BriefParser(llm)

        self.scheduler = scheduler
        self.autosaver = Autosaver(
            self._flush,
            delay=autosave_delay if autosave_delay is not None else autosave_delay_sec(),
            timer_factory=timer_factory,
        )
        self._lock = threading.RLock()
        self.flow: Optional[BriefingFlow] = None

        current = self.store.current or self.store.create()
        self._bind(current)

    # -----------------------------
    # Session binding + autosave
    # -----------------------------
    def _bind(self, saved: SavedBrief) -> None:
        if self.flow is not None:
            self.flow.close()
        self.flow = BriefingFlow(copy.deepcopy(saved), self.coach, scheduler=self.scheduler)
        if not saved.messages:
            # welcome message was seeded
            self.autosaver.mark_dirty()

    def _flush(self) -> None:
        with self._lock:
            flow = self.flow
            if flow is None:
                return
            self.store.update(flow.session.id, **snapshot_updates(flow.session, flow.status))

    def _touch(self) -> None:
        self.autosaver.mark_dirty()

    def flush(self) -> bool:
        return self.autosaver.flush()

    def _run(self, op: Callable[[BriefingFlow], Any]) -> Dict[str, Any]:
        with self._lock:
            try:
                op(self.flow)
            except BriefingError as e:
                logger.info("Rejected: %s", e)
                return self.payload(error=str(e))
            finally:
                self._touch()
            return self.payload()

    # -----------------------------
    # Briefs drawer
    # -----------------------------
    def new_brief(self) -> Dict[str, Any]:
        with self._lock:
            self.autosaver.flush()
            self._bind(self.store.create())
            return self.payload()

    def select_brief(self, brief_id: str) -> Dict[str, Any]:
        with self._lock:
            self.autosaver.flush()
            try:
                saved = self.store.select(brief_id)
            except KeyError:
                return self.payload(error=f"Brief not found: {brief_id}")
            self._bind(saved)
            return self.payload()

    def delete_brief(self, brief_id: str) -> Dict[str, Any]:
        with self._lock:
            deleting_open = self.flow is not None and self.flow.session.id == brief_id
            if deleting_open:
                self.autosaver.cancel()
            else:
                self.autosaver.flush()

            self.store.delete(brief_id)

            if deleting_open:
                current = self.store.current or self.store.create()
                self._bind(current)
            return self.payload()

    # -----------------------------
    # Conversation
    # -----------------------------
    def submit(self, text: str) -> Dict[str, Any]:
        return self._run(lambda f: f.submit(text))

    def action(self, action_id: str) -> Dict[str, Any]:
        return self._run(lambda f: f.handle_action(action_id))

    def advance(self) -> Dict[str, Any]:
        return self._run(lambda f: f.advance())

    def jump(self, phase: str) -> Dict[str, Any]:
        return self._run(lambda f: f.jump(phase))

    def edit_field(self, field: str, value: str) -> Dict[str, Any]:
        return self._run(lambda f: f.edit_field(field, value))

    # -----------------------------
    # Document bootstrap
    # -----------------------------
    def paste(self, text: str, source: str = "paste") -> Dict[str, Any]:
        def op(flow: BriefingFlow):
            extraction = self.parser.from_text(text, source)
            flow.apply_extraction(extraction.brief)

        return self._run(op)

    def upload(self, content: bytes, filename: str) -> Dict[str, Any]:
        def op(flow: BriefingFlow):
            extraction = self.parser.from_file(content, filename)
            flow.apply_extraction(extraction.brief)

        return self._run(op)

    # -----------------------------
    # Knowledge check
    # -----------------------------
    def run_knowledge_check(self) -> Dict[str, Any]:
        return self._run(lambda f: f.run_knowledge_check())

    def skip_knowledge_check(self) -> Dict[str, Any]:
        return self._run(lambda f: f.skip_knowledge_check())

    def continue_knowledge_check(self) -> Dict[str, Any]:
        return self._run(lambda f: f.continue_knowledge_check())

    # -----------------------------
    # Preview + Export
    # -----------------------------
    def preview_markdown(self) -> str:
        return render_markdown(self.flow.brief, self.flow.session.knowledge_check_result)

    def export(self, fmt: str = "md", out_dir: Optional[str] = None) -> Dict[str, Any]:
        flow = self.flow
        out_dir = out_dir or exports_dir()
        kc = flow.session.knowledge_check_result

        if fmt.lower() == "docx":
            path = export_docx_file(out_dir, flow.session.id, flow.brief, knowledge_check=kc)
            return {"brief_id": flow.session.id, "format": "docx", "path": path}

        path = export_markdown_file(out_dir, flow.session.id, flow.brief, knowledge_check=kc)
        return {"brief_id": flow.session.id, "format": "md", "path": path}

    # -----------------------------
    # Payload builder
    # -----------------------------
    def list_briefs(self) -> List[Dict[str, Any]]:
        out = []
        for b in self.store.list():
            out.append(
                {
                    "id": b.id,
                    "title": b.title,
                    "status": b.status,
                    "updated": format_relative_time(b.updated_at),
                    "current": self.flow is not None and b.id == self.flow.session.id,
                }
            )
        return out

    def payload(self, error: Optional[str] = None) -> Dict[str, Any]:
        flow = self.flow
        session = flow.session
        kc = flow.knowledge_check
        kc_result = kc.result or session.knowledge_check_result

        return {
            "brief_id": session.id,
            "title": derive_title(session.data.business_problem) or session.title,
            "phase": flow.phase,
            "status": flow.status,
            "brief": session.data.to_dict(),
            "messages": [{"id": m.id, "role": m.role, "content": m.content} for m in session.messages],
            "actions": [{"id": a.id, "label": a.label, "primary": a.primary} for a in flow.available_actions()],
            "busy": flow.busy,
            "has_suggestion": flow.has_suggestion,
            "completed_phases": list(session.completed_phases),
            "progress": [
                {"phase": s.phase, "label": s.label, "description": s.description, "state": s.state}
                for s in flow.progress()
            ],
            "knowledge_check": {
                "status": kc.status,
                "status_text": STATUS_TEXT.get(kc.status, ""),
                "error": kc.error,
                "result": _kc_payload(kc_result) if kc_result else None,
            },
            "briefs": self.list_briefs(),
            "error": error,
            # debug/info
            "use_llm": bool(use_llm()),
        }


def _kc_payload(result) -> Dict[str, Any]:
    display = status_display(result.status)
    return {
        "status": result.status,
        "findings": list(result.findings),
        "remaining_gaps": list(result.remaining_gaps),
        "confidence": result.confidence,
        "confidence_band": confidence_band(result.confidence),
        "source_count": result.source_count,
        "icon": display.icon,
        "color": display.color,
        "label": display.label,
        "description": display.description,
    }
