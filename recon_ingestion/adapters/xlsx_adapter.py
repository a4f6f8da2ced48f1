"""
XLSX source adapter for budget workbooks (lender draw schedules, owner
budgets exported from Excel).

Supports flexible layout:
  - sheet by index (0-based) or name
  - header row by index or auto-detect (scans the first rows for budget
    column names, skipping title rows such as "Project Budget")
  - skip_rows before header
  - normalizes cell values (strip, blank -> empty string)

Auto-detect looks for a row containing at least ``min_header_keywords`` of:
category, trade, item, description, budget, amount, original, revised,
actual, committed, ...
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterator

import openpyxl

from recon_ingestion.adapters.base import PROBE_SAMPLE_SIZE, SourceProbe

# Budget-like column keywords (normalized: strip, lower)
_HEADER_KEYWORDS = frozenset({
    "category", "category name", "trade", "item", "line item", "cost code",
    "description", "name",
    "budget", "original", "original budget", "original amount", "amount",
    "revised", "revised budget", "revised amount", "updated budget",
    "actual", "actual spend", "spent", "committed", "committed costs",
    "remaining", "cost", "notes",
})

_MAX_HEADER_SEARCH = 15
_MAX_COLUMNS = 50


def _normalize_header_cell(value: Any) -> str:
    """Normalize a cell value for header matching or key use."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _cell_value(row: Any, col_idx: int) -> Any:
    """Get cell value from an openpyxl row (0-based column index)."""
    if col_idx >= len(row):
        return ""
    v = getattr(row[col_idx], "value", None)
    if v is None:
        return ""
    if isinstance(v, float):
        return int(v) if v == int(v) else v
    if isinstance(v, (int, bool)):
        return v
    return str(v).strip()


def _header_score(row: Any, keywords: frozenset[str]) -> int:
    """Number of distinct header keywords found in a row."""
    found = set()
    for c in range(min(len(row), _MAX_COLUMNS)):
        v = _cell_value(row, c)
        if not isinstance(v, str) or not v:
            continue
        text = v.lower()
        for kw in keywords:
            if kw == text or kw in text:
                found.add(kw)
    return len(found)


def _detect_header_row(rows: list, keywords: frozenset[str], min_keywords: int) -> int:
    """0-based index of the first row that looks like a header, else 0."""
    for i, row in enumerate(rows[:_MAX_HEADER_SEARCH]):
        if _header_score(row, keywords) >= min_keywords:
            return i
    return 0


def _column_count(row: Any) -> int:
    """Index past the last non-empty cell."""
    n = 0
    for c in range(min(len(row), _MAX_COLUMNS)):
        if _cell_value(row, c) != "":
            n = c + 1
    return max(n, 1)


def _build_headers(header_row: Any) -> list[str]:
    headers: list[str] = []
    for c in range(_column_count(header_row)):
        key = _normalize_header_cell(_cell_value(header_row, c)) or f"Column_{c + 1}"
        base, cnt = key, 0
        while key in headers:
            cnt += 1
            key = f"{base}_{cnt}"
        headers.append(key)
    return headers


class XlsxSourceAdapter:
    """
    Read .xlsx files as one dict per row, keyed by the header row.

    source_options:
      sheet: 0-based sheet index (int) or sheet name (str). Default: active sheet.
      skip_rows: rows to skip at the top of the sheet. Default: 0.
      header_row: 0-based row index (after skip_rows) to use as header;
        used when auto_detect_header is false.
      auto_detect_header: scan the first 15 rows for a header. Default: true.
      min_header_keywords: keywords a row needs to count as header. Default: 2.
      header_keywords: override the keyword set used for detection.
    """

    def _get_sheet(self, wb: Any, options: dict[str, Any]) -> Any:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            return wb.active
        if isinstance(sheet_ref, int):
            return wb.worksheets[sheet_ref]
        return wb[sheet_ref]

    def _header_index(self, rows: list, options: dict[str, Any]) -> int:
        if not options.get("auto_detect_header", True):
            return int(options.get("header_row") or 0)
        keywords = options.get("header_keywords")
        keyword_set = (
            frozenset(str(k).lower() for k in keywords) if keywords else _HEADER_KEYWORDS
        )
        return _detect_header_row(
            rows, keyword_set, int(options.get("min_header_keywords", 2)),
        )

    def _load(
        self, source_path: Path, options: dict[str, Any], max_row: int,
    ) -> tuple[list[str], list[list[Any]]]:
        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            sheet = self._get_sheet(wb, options)
            skip_rows = int(options.get("skip_rows", 0))
            # read_only sheets iterate once
            rows = list(sheet.iter_rows(min_row=1 + skip_rows, max_row=max_row))
            if not rows:
                return [], []
            hi = self._header_index(rows, options)
            headers = _build_headers(rows[hi])
            body = []
            for row in rows[hi + 1:]:
                vals = [_cell_value(row, c) for c in range(len(headers))]
                if any(v != "" for v in vals):
                    body.append(vals)
            return headers, body
        finally:
            wb.close()

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        headers, body = self._load(source_path, options, max_row=100_000)
        for vals in body:
            yield dict(zip(headers, vals))

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        headers, body = self._load(source_path, options, max_row=500)
        return SourceProbe(
            row_count=len(body),
            columns=tuple(headers),
            sample_rows=tuple(dict(zip(headers, v)) for v in body[:PROBE_SAMPLE_SIZE]),
        )
