from __future__ import annotations

from typing import Dict, List

from ..core.constants import BRIEF_FIELDS, FIELD_LABELS, KNOWLEDGE_QUERY_MAX_CHARS
from ..core.types import Brief, Message


# Per-phase coaching guidance appended to the system prompt
PHASE_GUIDANCE: Dict[str, str] = {
    "problem": (
        "Ask about the business problem. A good problem statement includes:\n"
        "- What's at risk or uncertain\n"
        "- Who needs to decide\n"
        "- Why it matters now\n"
        'If they give a vague answer like "we want to test X", push them to articulate '
        "the underlying problem."
    ),
    "objective": (
        "Ask about business and research objectives. Good objectives are:\n"
        "- Specific and measurable\n"
        "- Linked to business outcomes\n"
        "- Clear about what success looks like"
    ),
    "research_objective": (
        "Ask about the research objective. It should:\n"
        "- Name the questions the research must answer\n"
        "- Be about insights, not business outcomes\n"
        "- Be actionable"
    ),
    "audience": (
        "Ask about the target audience. Good audience definitions include:\n"
        "- Demographics or firmographics\n"
        "- Behaviors or characteristics\n"
        "- Screening criteria"
    ),
    "gap": (
        "Help identify the knowledge gap. This should be:\n"
        "- What we don't currently know\n"
        "- Specific and bounded\n"
        "- Connected to the decision that needs to be made"
    ),
    "knowledge_check": (
        "Assess what existing knowledge might already address the knowledge gap "
        "and what would still need new research."
    ),
    "review": "Summarize the complete brief and ask for confirmation. Present it clearly formatted.",
}


def _clip(s: str, n: int) -> str:
    s = (s or "").strip()
    if len(s) <= n:
        return s
    return s[:n].rstrip() + "…"


def build_brief_state(brief: Brief, *, max_chars_per_field: int = 600) -> str:
    lines: List[str] = []
    for k in BRIEF_FIELDS:
        v = _clip(brief.get(k), max_chars_per_field)
        lines.append(f"{FIELD_LABELS[k]}: {v or '[not yet defined]'}")
    return "\n".join(lines)


def phase_guidance(phase: str) -> str:
    return PHASE_GUIDANCE.get(phase, "")


def to_chat_messages(messages: List[Message]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages if m.role in ("user", "assistant")]


def build_knowledge_query(brief: Brief, max_chars: int = KNOWLEDGE_QUERY_MAX_CHARS) -> str:
    """
    Problem, objective, audience and gap (non-empty only), space-joined and capped.
    The research objective is not part of the query.
    """
    parts = [
        brief.business_problem,
        brief.business_objective,
        brief.target_audience,
        brief.knowledge_gap,
    ]
    return " ".join(p for p in parts if p)[:max_chars]
