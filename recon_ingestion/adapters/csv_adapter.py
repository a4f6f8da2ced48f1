"""
CSV source adapter for budget exports.

Uses csv.DictReader. Configurable: delimiter, encoding, has_header, quoting,
skip_rows. Handles BOM via utf-8-sig when encoding is utf-8 (Excel's
"CSV UTF-8" export writes one). Streams rows.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterator, TextIO

from recon_ingestion.adapters.base import PROBE_SAMPLE_SIZE, SourceProbe, positional_columns

_QUOTING = {
    "minimal": csv.QUOTE_MINIMAL,
    "all": csv.QUOTE_ALL,
    "nonnumeric": csv.QUOTE_NONNUMERIC,
    "none": csv.QUOTE_NONE,
}


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return enc


def _get_quoting(options: dict[str, Any]) -> int:
    q = options.get("quoting", "minimal")
    if isinstance(q, int):
        return q
    return _QUOTING.get(str(q).lower(), csv.QUOTE_MINIMAL)


class CsvSourceAdapter:
    """Read CSV files as one dict per row."""

    def _records(self, f: TextIO, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        delimiter = options.get("delimiter", ",")
        quoting = _get_quoting(options)
        for _ in range(int(options.get("skip_rows", 0))):
            next(f, None)

        if options.get("has_header", True):
            for row in csv.DictReader(f, delimiter=delimiter, quoting=quoting):
                # Short rows leave None for missing trailing cells.
                yield {k: ("" if v is None else v) for k, v in row.items() if k is not None}
            return

        columns = options.get("columns")
        for row in csv.reader(f, delimiter=delimiter, quoting=quoting):
            names = columns or positional_columns(len(row))
            yield dict(zip(names, row))

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        with source_path.open("r", encoding=_get_encoding(options), newline="") as f:
            yield from self._records(f, options)

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")

        columns: tuple[str, ...] = ()
        sample: list[dict[str, Any]] = []
        count = 0
        with source_path.open("r", encoding=encoding, newline="") as f:
            for record in self._records(f, options):
                if not columns:
                    columns = tuple(record.keys())
                if len(sample) < PROBE_SAMPLE_SIZE:
                    sample.append(record)
                count += 1

        return SourceProbe(
            row_count=count,
            columns=columns,
            sample_rows=tuple(sample),
            encoding=encoding,
            detected_delimiter=delimiter,
        )
