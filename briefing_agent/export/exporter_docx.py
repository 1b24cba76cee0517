from __future__ import annotations

import os
from typing import Optional

from docx import Document
from docx.shared import Pt

from ..core.constants import FIELD_LABELS
from ..core.knowledge_check import status_display
from ..core.types import Brief, KnowledgeCheckResult
from .exporter_md import EXPORT_ORDER


def _add_section(doc: Document, title: str, value: str) -> None:
    doc.add_heading(title, level=2)
    text = (value or "").strip()
    doc.add_paragraph(text if text else "TBD")


def export_docx_file(
    out_dir: str,
    brief_id: str,
    brief: Brief,
    knowledge_check: Optional[KnowledgeCheckResult] = None,
    filename: Optional[str] = None,
    title: str = "Research Brief",
) -> str:
    os.makedirs(out_dir, exist_ok=True)
    if not filename:
        filename = f"brief_{brief_id}.docx"
    path = os.path.join(out_dir, filename)

    doc = Document()
    doc.add_heading(title, level=1)

    for k in EXPORT_ORDER:
        _add_section(doc, FIELD_LABELS[k], brief.get(k))

    if knowledge_check:
        display = status_display(knowledge_check.status)
        doc.add_page_break()
        doc.add_heading("Knowledge Check", level=1)
        doc.add_paragraph(f"{display.label}: {display.description}")
        doc.add_paragraph(
            f"Confidence: {knowledge_check.confidence}% | Sources: {knowledge_check.source_count}"
        )

        if knowledge_check.findings:
            doc.add_heading("What We Found", level=2)
            for f in knowledge_check.findings:
                doc.add_paragraph(str(f), style="List Bullet")

        if knowledge_check.remaining_gaps:
            doc.add_heading("Remaining Knowledge Gaps", level=2)
            for g in knowledge_check.remaining_gaps:
                doc.add_paragraph(str(g), style="List Bullet")

    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    doc.save(path)
    return path
