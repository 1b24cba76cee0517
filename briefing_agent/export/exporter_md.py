from __future__ import annotations

import os
from typing import Optional

from ..core.constants import FIELD_LABELS
from ..core.types import Brief, KnowledgeCheckResult

# Export order differs from storage order: audience before gap
EXPORT_ORDER = [
    "business_problem",
    "business_objective",
    "research_objective",
    "target_audience",
    "knowledge_gap",
]


def render_markdown(brief: Brief, knowledge_check: Optional[KnowledgeCheckResult] = None) -> str:
    lines = ["# Research Brief"]

    for k in EXPORT_ORDER:
        v = brief.get(k).strip()
        lines.append("")
        lines.append(f"## {FIELD_LABELS[k]}")
        lines.append(v if v else "TBD")

    if knowledge_check:
        lines.append("")
        lines.append("## Knowledge Check")
        lines.append(
            f"Status: {knowledge_check.status} "
            f"({knowledge_check.confidence}% confidence, {knowledge_check.source_count} sources)"
        )
        for f in knowledge_check.findings:
            lines.append(f"- {f}")
        if knowledge_check.remaining_gaps:
            lines.append("")
            lines.append("Remaining gaps:")
            for g in knowledge_check.remaining_gaps:
                lines.append(f"- {g}")

    return "\n".join(lines)


def export_markdown_file(
    out_dir: str,
    brief_id: str,
    brief: Brief,
    knowledge_check: Optional[KnowledgeCheckResult] = None,
    filename: Optional[str] = None,
) -> str:
    os.makedirs(out_dir, exist_ok=True)
    if not filename:
        filename = f"brief_{brief_id}.md"
    path = os.path.join(out_dir, filename)

    content = render_markdown(brief, knowledge_check=knowledge_check)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)

    return path
