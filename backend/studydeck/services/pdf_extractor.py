from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import fitz  # PyMuPDF

# Pages with fewer than this many chars on average are likely scanned images
_OCR_THRESHOLD_CHARS_PER_PAGE = 50


@dataclass
class PageText:
    page_number: int  # 1-indexed
    text: str


@dataclass
class PdfExtraction:
    author: str
    page_count: int
    pages: list[PageText] = field(default_factory=list)
    needs_ocr: bool = False

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.pages)


def extract_pdf(file_path: Path) -> PdfExtraction:
    """Extract text and metadata from a PDF file.

    Synchronous and CPU-bound; call via asyncio.to_thread().
    """
    doc = fitz.open(str(file_path))
    try:
        meta = doc.metadata or {}
        pages = [
            PageText(page_number=i + 1, text=page.get_text("text"))
            for i, page in enumerate(doc)
        ]

        total_chars = sum(len(p.text.strip()) for p in pages)
        avg_chars = total_chars / max(len(pages), 1)

        return PdfExtraction(
            author=meta.get("author", "") or "",
            page_count=len(doc),
            pages=pages,
            needs_ocr=avg_chars < _OCR_THRESHOLD_CHARS_PER_PAGE,
        )
    finally:
        doc.close()
