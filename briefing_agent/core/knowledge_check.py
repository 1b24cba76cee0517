"""Knowledge-check sub-flow.

idle -> searching -> analyzing -> complete, with any failure dropping back to
idle and leaving a recoverable error message.

The analysis step calls the completion collaborator with the brief as context
but does not read its reply: the verdict is synthesized with a fixed shape
(status, findings, remaining gaps, confidence, source count). A real retrieval
backend can replace synthesize_result() without changing that shape.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..llm.context_builder import build_knowledge_query
from .errors import InvalidTransitionError
from .types import Brief, KnowledgeCheckResult, Message

logger = logging.getLogger(__name__)

IDLE = "idle"
SEARCHING = "searching"
ANALYZING = "analyzing"
COMPLETE = "complete"

ERROR_MESSAGE = "Failed to complete knowledge check. You can skip for now and proceed."

STATUS_TEXT = {
    SEARCHING: "Searching knowledge base...",
    ANALYZING: "Analyzing relevance...",
}


@dataclass(frozen=True)
class StatusDisplay:
    icon: str
    color: str
    label: str
    description: str


STATUS_DISPLAY: Dict[str, StatusDisplay] = {
    "sufficient": StatusDisplay(
        icon="✅",
        color="green",
        label="Good Coverage",
        description="Existing knowledge addresses most of your questions.",
    ),
    "partial": StatusDisplay(
        icon="⚠️",
        color="orange",
        label="Partial Coverage",
        description="Some relevant knowledge exists, but gaps remain.",
    ),
    "needs_research": StatusDisplay(
        icon="❌",
        color="red",
        label="Research Needed",
        description="Limited existing knowledge. New research is recommended.",
    ),
}


def status_display(status: str) -> StatusDisplay:
    return STATUS_DISPLAY[status]


def confidence_band(confidence: int) -> str:
    if confidence >= 70:
        return "high"
    if confidence >= 40:
        return "medium"
    return "low"


def synthesize_result(brief: Brief) -> KnowledgeCheckResult:
    return KnowledgeCheckResult(
        status="partial",
        findings=(
            "Some relevant market research exists in the industry",
            "Previous customer surveys may provide partial insights",
            "Competitor analysis data is available",
        ),
        remaining_gaps=(
            brief.knowledge_gap or "Specific customer decision factors remain unknown",
            "Direct user feedback on pain points is limited",
        ),
        confidence=45,
        source_count=3,
    )


def analysis_request(brief: Brief) -> str:
    return (
        "Analyze this research brief and determine what existing knowledge might already "
        f"address the knowledge gaps. Brief: {json.dumps(brief.to_dict(), ensure_ascii=False)}"
    )


class KnowledgeCheck:
    """
    One run per knowledge_check visit. The coach only needs a
    reply(messages, phase, brief) method.
    """

    def __init__(self, coach, on_status: Optional[Callable[[str], None]] = None):
        self.coach = coach
        self.on_status = on_status
        self.status = IDLE
        self.result: Optional[KnowledgeCheckResult] = None
        self.error: Optional[str] = None
        self.query = ""

    def _set_status(self, status: str) -> None:
        self.status = status
        if self.on_status:
            self.on_status(status)

    def run(self, brief: Brief) -> Optional[KnowledgeCheckResult]:
        if self.status != IDLE:
            raise InvalidTransitionError(f"Knowledge check cannot run from '{self.status}'")

        self._set_status(SEARCHING)
        self.error = None

        try:
            self.query = build_knowledge_query(brief)
            logger.info("Knowledge check starting with query: %r", self.query)

            self._set_status(ANALYZING)
            self.coach.reply(
                [Message(role="user", content=analysis_request(brief))],
                "knowledge_check",
                brief,
            )
            result = synthesize_result(brief)
        except Exception:
            logger.exception("Knowledge check failed")
            self.error = ERROR_MESSAGE
            self._set_status(IDLE)
            return None

        self.result = result
        self._set_status(COMPLETE)
        return result

    def take_result(self) -> KnowledgeCheckResult:
        if self.status != COMPLETE or self.result is None:
            raise InvalidTransitionError("Knowledge check has no result to continue with")
        return self.result

    def reset(self) -> None:
        self.status = IDLE
        self.result = None
        self.error = None
        self.query = ""
