from __future__ import annotations

import json
import os
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import (
    INITIAL_PHASE,
    PHASE_ORDER,
    STATUS_COMPLETE,
    STATUS_DRAFT,
    STORAGE_KEY,
    TITLE_MAX_CHARS,
    UNTITLED_BRIEF,
)
from .types import Brief, KnowledgeCheckResult, Message, SavedBrief, new_id


def _ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        dt = datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def derive_title(problem: str) -> str:
    return (problem or "").strip()[:TITLE_MAX_CHARS]


def create_session() -> SavedBrief:
    """Fresh identity, empty brief, empty transcript, phase=problem, draft."""
    return SavedBrief()


# -----------------------------
# Serialization
# -----------------------------
def session_to_dict(session: SavedBrief) -> Dict[str, Any]:
    kc = session.knowledge_check_result
    return {
        "id": session.id,
        "title": session.title,
        "data": session.data.to_dict(),
        "messages": [asdict(m) for m in session.messages],
        "phase": session.phase,
        "status": session.status,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
        "completed_phases": list(session.completed_phases),
        "knowledge_check_result": _kc_to_dict(kc) if kc else None,
    }


def _kc_to_dict(kc: KnowledgeCheckResult) -> Dict[str, Any]:
    return {
        "status": kc.status,
        "findings": list(kc.findings),
        "remaining_gaps": list(kc.remaining_gaps),
        "confidence": kc.confidence,
        "source_count": kc.source_count,
    }


def knowledge_check_from_dict(data: Optional[Dict[str, Any]]) -> Optional[KnowledgeCheckResult]:
    if not isinstance(data, dict) or not data.get("status"):
        return None
    return KnowledgeCheckResult(
        status=str(data["status"]),
        findings=tuple(str(x) for x in data.get("findings") or []),
        remaining_gaps=tuple(str(x) for x in data.get("remaining_gaps") or []),
        confidence=int(data.get("confidence") or 0),
        source_count=int(data.get("source_count") or 0),
    )


def session_from_dict(data: Dict[str, Any]) -> SavedBrief:
    """
    Rehydrates one stored session.
    Missing optional keys fall back to defaults so older files still load.
    """
    messages = []
    for m in data.get("messages") or []:
        if isinstance(m, dict) and m.get("role") in ("user", "assistant"):
            messages.append(
                Message(role=m["role"], content=str(m.get("content") or ""), id=str(m.get("id") or new_id()))
            )

    phase = data.get("phase") or INITIAL_PHASE
    if phase not in PHASE_ORDER:
        phase = INITIAL_PHASE

    completed = [p for p in data.get("completed_phases") or [] if p in PHASE_ORDER]

    status = data.get("status")
    if status not in (STATUS_DRAFT, STATUS_COMPLETE):
        status = STATUS_DRAFT

    return SavedBrief(
        id=str(data["id"]),
        title=str(data.get("title") or UNTITLED_BRIEF),
        data=Brief.from_dict(data.get("data")),
        messages=messages,
        phase=phase,
        status=status,
        created_at=_parse_dt(data.get("created_at")),
        updated_at=_parse_dt(data.get("updated_at")),
        completed_phases=completed,
        knowledge_check_result=knowledge_check_from_dict(data.get("knowledge_check_result")),
    )


# -----------------------------
# Whole-collection load/save
# -----------------------------
def save_collection(path: str, sessions: List[SavedBrief]) -> str:
    _ensure_dir(os.path.dirname(path))
    blob = {STORAGE_KEY: [session_to_dict(s) for s in sessions]}

    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(blob, f, ensure_ascii=False, indent=2)
    os.replace(tmp, path)
    return path


def load_collection(path: str) -> List[SavedBrief]:
    """
    Returns [] when the file does not exist yet.
    Raises on unreadable / corrupt files; the store decides how to degrade.
    """
    if not os.path.exists(path):
        return []

    with open(path, "r", encoding="utf-8") as f:
        blob = json.load(f)

    raw = blob.get(STORAGE_KEY) if isinstance(blob, dict) else None
    if not isinstance(raw, list):
        raise ValueError(f"'{STORAGE_KEY}' collection missing in {path}")

    return [session_from_dict(item) for item in raw if isinstance(item, dict) and item.get("id")]
