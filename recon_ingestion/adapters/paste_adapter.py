"""
Pasted spreadsheet text adapter.

Copying cells out of Excel or Google Sheets puts tab-separated text on the
clipboard; text copied out of a PDF or an email usually keeps columns
apart with runs of spaces, and hand-typed lists use commas.  Each line is
split on the first of those that yields two or more cells:

    tab  ->  2+ whitespace characters  ->  comma

A line that still yields a single cell is taken as a category with a zero
amount (``[line, "0"]``).  Blank lines produce an empty row so row numbers
in import errors match the user's paste.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterator

from recon_ingestion.adapters.base import PROBE_SAMPLE_SIZE, SourceProbe, positional_columns

_MULTI_SPACE = re.compile(r"\s{2,}")


def split_pasted_line(line: str) -> list[str]:
    """Split one pasted line into cells."""
    text = line.strip()
    if not text:
        return []
    parts = line.rstrip("\r\n").split("\t")
    if len(parts) < 2:
        parts = _MULTI_SPACE.split(text)
    if len(parts) < 2:
        parts = text.split(",")
    if len(parts) < 2:
        return [text, "0"]
    return [p.strip() for p in parts]


class PastedTextAdapter:
    """Read pasted (or saved .txt/.tsv) spreadsheet text as positional rows."""

    def parse_rows(self, text: str) -> list[list[str]]:
        """Rows of cells; leading and trailing blank lines are dropped."""
        stripped = text.strip()
        if not stripped:
            return []
        return [split_pasted_line(line) for line in stripped.splitlines()]

    def read_text(self, text: str) -> Iterator[dict[str, Any]]:
        for cells in self.parse_rows(text):
            if cells:
                yield dict(zip(positional_columns(len(cells)), cells))

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        text = source_path.read_text(encoding=options.get("encoding", "utf-8-sig"))
        yield from self.read_text(text)

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        records = list(self.read(source_path, options))
        width = max((len(r) for r in records), default=0)
        return SourceProbe(
            row_count=len(records),
            columns=tuple(positional_columns(width)),
            sample_rows=tuple(records[:PROBE_SAMPLE_SIZE]),
            encoding=options.get("encoding", "utf-8-sig"),
            detected_delimiter=None,
        )
