from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.constants import BRIEF_FIELDS, EXTRACTION_MAX_CHARS, FIELD_ALIASES
from ..core.errors import NoContentError
from ..llm.client import LLMClient
from ..llm.json_parser import JSONParseError
from .extractors import ExtractorRegistry

logger = logging.getLogger(__name__)

SYSTEM_TEXT = "You are a research brief parser. Extract brief elements from text and return JSON."
SYSTEM_DOCUMENT = "You are a research brief parser. Extract brief elements from documents and return JSON."


@dataclass
class BriefExtraction:
    brief: Dict[str, str] = field(default_factory=dict)   # partial: only non-empty fields
    source: str = ""
    text: Optional[str] = None
    file_name: Optional[str] = None


def coerce_partial_brief(data: Any) -> Dict[str, str]:
    """
    Keep only known brief fields with non-empty string values.
    Accepts snake_case names and the camelCase spelling the prompt asks for.
    """
    if not isinstance(data, dict):
        return {}
    out: Dict[str, str] = {}
    for key, value in data.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in BRIEF_FIELDS or not isinstance(value, str):
            continue
        value = value.strip()
        if value:
            out[name] = value
    return out


class BriefParser:
    """
    Extraction collaborator. Best-effort: malformed model output gives an empty
    partial brief; transport failures propagate as CollaboratorError.
    """

    def __init__(self, llm: Optional[LLMClient] = None, registry: Optional[ExtractorRegistry] = None):
        self.llm = llm or LLMClient()
        self.registry = registry or ExtractorRegistry()

    def _extract(self, text: str, *, kind: str, source: str) -> Dict[str, str]:
        source_clause = f" The user pasted this from {source}." if kind == "text" else ""
        prompt = self.llm.render_prompt(
            "extract_brief.txt",
            {
                "kind": kind,
                "kind_title": kind.capitalize(),
                "source_clause": source_clause,
                "text": text[:EXTRACTION_MAX_CHARS],
            },
        )
        system = SYSTEM_TEXT if kind == "text" else SYSTEM_DOCUMENT
        try:
            data = self.llm.run_json(system, prompt, temperature=0.3, max_output_tokens=1000)
        except JSONParseError as e:
            logger.warning("Failed to parse extraction response: %s", e)
            return {}
        return coerce_partial_brief(data)

    def from_text(self, text: str, source: str = "paste") -> BriefExtraction:
        if not text or not text.strip():
            raise NoContentError("No text provided")
        brief = self._extract(text, kind="text", source=source)
        return BriefExtraction(brief=brief, source=source, text=text)

    def from_file(self, content: bytes, filename: str) -> BriefExtraction:
        # type check first so an empty .csv still reports the type problem
        self.registry.select(filename)
        if not content:
            raise NoContentError("No file provided")
        extracted = self.registry.extract(content, filename)
        brief = self._extract(extracted.content, kind="document", source=filename)
        return BriefExtraction(brief=brief, source=filename, text=extracted.content, file_name=filename)
