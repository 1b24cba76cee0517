from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import BRIEF_FIELDS, INITIAL_PHASE, STATUS_DRAFT, UNTITLED_BRIEF


Phase = str
FieldName = str
BriefId = str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Brief:
    business_problem: str = ""
    business_objective: str = ""
    research_objective: str = ""
    knowledge_gap: str = ""
    target_audience: str = ""

    def get(self, field_name: FieldName) -> str:
        if field_name not in BRIEF_FIELDS:
            raise KeyError(field_name)
        return getattr(self, field_name)

    def set(self, field_name: FieldName, value: str) -> None:
        if field_name not in BRIEF_FIELDS:
            raise KeyError(field_name)
        setattr(self, field_name, value)

    def merge(self, partial: Dict[FieldName, str]) -> List[FieldName]:
        """Copy non-empty values over; returns the fields that changed."""
        applied = []
        for k in BRIEF_FIELDS:
            v = (partial.get(k) or "").strip()
            if v:
                setattr(self, k, v)
                applied.append(k)
        return applied

    def copy(self) -> "Brief":
        return Brief(**self.to_dict())

    def to_dict(self) -> Dict[FieldName, str]:
        return {k: getattr(self, k) for k in BRIEF_FIELDS}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Brief":
        data = data or {}
        return cls(**{k: str(data.get(k) or "") for k in BRIEF_FIELDS})


@dataclass(frozen=True)
class Message:
    role: str                     # "user" | "assistant"
    content: str
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class KnowledgeCheckResult:
    status: str                   # "sufficient" | "partial" | "needs_research"
    findings: tuple = ()
    remaining_gaps: tuple = ()
    confidence: int = 0           # percentage 0..100
    source_count: int = 0


@dataclass(frozen=True)
class ActionChip:
    id: str
    label: str
    primary: bool = False


@dataclass
class SavedBrief:
    id: BriefId = field(default_factory=new_id)
    title: str = UNTITLED_BRIEF
    data: Brief = field(default_factory=Brief)
    messages: List[Message] = field(default_factory=list)
    phase: Phase = INITIAL_PHASE
    status: str = STATUS_DRAFT    # "draft" | "complete"
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    # Progress + knowledge check verdict survive reloads
    completed_phases: List[Phase] = field(default_factory=list)
    knowledge_check_result: Optional[KnowledgeCheckResult] = None
