"""Reading tabula JSON artifacts back as register tables.

tabula-java writes a JSON list of tables per invocation. Each table carries
its detection method, its bounding box on the page and `data`, a list of rows
whose cells hold the recognised text and geometry.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import TableFormatError

logger = logging.getLogger(__name__)


class Cell(BaseModel):
    text: str = ""
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ExtractedTable(BaseModel):
    """One table detected on a page."""

    extraction_method: str = ""
    page_number: int | None = None
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0
    data: List[List[Cell]] = Field(default_factory=list)

    def rows(self) -> List[List[str]]:
        return [[cell.text.strip() for cell in row] for row in self.data]


_TABLE_LIST = TypeAdapter(List[ExtractedTable])


def load_tables(path: Path) -> List[ExtractedTable]:
    """
    Parse one tabula JSON artifact.

    Raises TableFormatError when the file is not JSON or not a list of tables.
    """
    try:
        raw: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TableFormatError(f"{path} is not valid JSON: {exc}") from exc
    try:
        tables = _TABLE_LIST.validate_python(raw)
    except ValidationError as exc:
        raise TableFormatError(f"{path} is not a tabula table list: {exc}") from exc
    logger.debug("Loaded %d table(s) from %s", len(tables), path)
    return tables


def _unique_headings(cells: Sequence[str]) -> List[str]:
    headings: List[str] = []
    used: set[str] = set()
    counts: Dict[str, int] = {}
    for index, text in enumerate(cells):
        base = text or f"column_{index}"
        name = base
        while name in used:
            counts[base] = counts.get(base, 0) + 1
            name = f"{base}_{counts[base]}"
        used.add(name)
        headings.append(name)
    return headings


def table_to_dataframe(table: ExtractedTable, *, header: bool = True) -> pd.DataFrame:
    """
    Convert a table to a DataFrame.

    With `header`, the first row supplies column names; blank or repeated
    headings are made unique. Ragged rows are padded with empty strings.
    """
    rows = table.rows()
    if not rows:
        return pd.DataFrame()
    width = max(len(row) for row in rows)
    padded = [row + [""] * (width - len(row)) for row in rows]
    if header:
        return pd.DataFrame(padded[1:], columns=_unique_headings(padded[0]))
    return pd.DataFrame(padded)


def tables_to_dataframe(path: Path, *, header: bool = True) -> pd.DataFrame:
    """Concatenate every table found in one artifact."""
    frames = [table_to_dataframe(t, header=header) for t in load_tables(path)]
    frames = [f for f in frames if not f.empty]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def export_workbook(paths: Sequence[Path], output_path: Path) -> None:
    """
    Write each artifact to its own sheet, named after the file stem.

    Every artifact is parsed before the workbook is opened, so a bad artifact
    raises TableFormatError without leaving a partial workbook behind.
    """
    # Excel caps sheet names at 31 characters
    sheets = [(Path(path).stem[:31], tables_to_dataframe(path)) for path in paths]
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Writing %d table artifact(s) to %s", len(sheets), output_path)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for sheet_name, df in sheets:
            df.to_excel(writer, sheet_name=sheet_name, index=False)
