from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF

from .errors import PdfInspectError


def page_count(file_path: Path) -> int:
    """Return the number of pages in a PDF."""
    try:
        doc = fitz.open(file_path)
    except (RuntimeError, OSError) as exc:
        raise PdfInspectError(f"Cannot open {file_path}: {exc}") from exc
    try:
        return len(doc)
    finally:
        doc.close()
