"""Document text extraction.

Turns uploaded file bytes into plain text before brief extraction runs. The
file type is decided by extension only: PDF, DOCX/DOC, TXT and MD are
accepted, anything else raises UnsupportedFileTypeError.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.errors import ExtractionError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)


@dataclass
class ExtractedText:
    content: str
    total_pages: Optional[int] = None
    metadata: Dict[str, object] = field(default_factory=dict)


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower().lstrip(".")


class BaseExtractor:
    name: str = "base"
    extensions: frozenset = frozenset()

    def can_handle(self, extension: str) -> bool:
        return extension in self.extensions

    def extract(self, content: bytes) -> ExtractedText:
        raise NotImplementedError


class PlainTextExtractor(BaseExtractor):
    name = "plain-text"
    extensions = frozenset({"txt", "md"})

    def extract(self, content: bytes) -> ExtractedText:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            text = content.decode("latin-1")
        return ExtractedText(content=text, metadata={"extractor": self.name})


class PDFTextExtractor(BaseExtractor):
    name = "pdf-text"
    extensions = frozenset({"pdf"})

    def extract(self, content: bytes) -> ExtractedText:
        from pypdf import PdfReader

        try:
            reader = PdfReader(io.BytesIO(content))
            chunks: List[str] = []
            for page in reader.pages:
                txt = page.extract_text() or ""
                if txt.strip():
                    chunks.append(txt.strip())
        except Exception as exc:
            raise ExtractionError("Unable to parse PDF file; it might be corrupt") from exc

        return ExtractedText(
            content="\n\n".join(chunks),
            total_pages=len(reader.pages),
            metadata={"extractor": self.name},
        )


class WordExtractor(BaseExtractor):
    """python-docx reads the OOXML container; legacy binary .doc files fail with ExtractionError."""

    name = "word"
    extensions = frozenset({"docx", "doc"})

    def extract(self, content: bytes) -> ExtractedText:
        from docx import Document

        try:
            doc = Document(io.BytesIO(content))
        except Exception as exc:
            raise ExtractionError("Unable to read Word document") from exc

        parts = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        return ExtractedText(content="\n".join(parts), metadata={"extractor": self.name})


class ExtractorRegistry:
    """Ordered registry; the first extractor that claims the extension wins."""

    def __init__(self, extractors: Optional[List[BaseExtractor]] = None) -> None:
        self._extractors = extractors or [
            PlainTextExtractor(),
            PDFTextExtractor(),
            WordExtractor(),
        ]

    @property
    def supported_extensions(self) -> List[str]:
        out: List[str] = []
        for e in self._extractors:
            out.extend(sorted(e.extensions))
        return out

    def select(self, filename: str) -> BaseExtractor:
        ext = file_extension(filename)
        for extractor in self._extractors:
            if extractor.can_handle(ext):
                return extractor
        raise UnsupportedFileTypeError(ext)

    def extract(self, content: bytes, filename: str) -> ExtractedText:
        extractor = self.select(filename)
        result = extractor.extract(content)
        if not result.content.strip():
            raise ExtractionError("Could not extract text from file")
        logger.info(
            "Extracted %d chars from %s via %s", len(result.content), filename, extractor.name
        )
        return result
