"""
recon_ingestion.budget_import -- Map imported spreadsheet rows to budget lines.

Responsibility:
    Turn rows from a paste, a CSV file or a workbook into ``BudgetLineInput``
    records the budget engine accepts, reporting every row that cannot be
    imported instead of stopping at the first.

Architecture position:
    Ingestion -- boundary layer.  Reads through ``recon_ingestion.adapters``
    and produces engine inputs; persisting them is the caller's job.

Invariants enforced:
    - A header row is detected by keyword on the first row only.
    - Amounts go through the same non-negative coercion as a single-row
      edit: "$", "," and blanks are cleaned, "-"/em dash mean zero,
      unreadable or negative values become zero and are reported as
      NonNegativeViolation records.
    - ``display_order`` follows row order.
    - Rows without a category name are never imported; each yields a
      ``MISSING_CATEGORY`` ValidationError naming its row.

Failure modes:
    - UnknownFieldError when ``column_map`` targets a field that is not a
      budget line field (a wiring error, raised).
    - ValueError from ``import_budget_file`` for an unsupported file type.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from recon_engines.budget import BudgetLineInput, RecordId
from recon_ingestion.adapters import CsvSourceAdapter, PastedTextAdapter, XlsxSourceAdapter
from recon_kernel.domain.dtos import ValidationError
from recon_kernel.domain.values import NonNegativeViolation, coerce_non_negative
from recon_kernel.exceptions import UnknownFieldError
from recon_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.budget_import")

# Keywords that mark the first pasted row as a header.
HEADER_KEYWORDS: tuple[str, ...] = (
    "category", "trade", "item", "description", "name",
    "original", "revised", "updated", "budget", "amount",
    "actual", "spent", "spend", "committed", "remaining",
    "uw budget", "uw", "cost",
)

IMPORT_FIELDS: tuple[str, ...] = (
    "category_name",
    "original_amount",
    "revised_amount",
    "actual_spend",
    "committed_costs",
    "description",
    "notes",
)

# Column order of a headerless paste: the order of the budget table.
POSITIONAL_FIELDS: tuple[str, ...] = IMPORT_FIELDS[:5]

_AMOUNT_FIELDS = IMPORT_FIELDS[1:5]

COLUMN_ALIASES: dict[str, str] = {
    "category": "category_name",
    "category name": "category_name",
    "category_name": "category_name",
    "trade": "category_name",
    "item": "category_name",
    "line item": "category_name",
    "cost code": "category_name",
    "name": "category_name",
    "original": "original_amount",
    "original amount": "original_amount",
    "original_amount": "original_amount",
    "original budget": "original_amount",
    "original_budget": "original_amount",
    "budget": "original_amount",
    "amount": "original_amount",
    "uw budget": "original_amount",
    "uw": "original_amount",
    "revised": "revised_amount",
    "revised amount": "revised_amount",
    "revised_amount": "revised_amount",
    "revised budget": "revised_amount",
    "updated": "revised_amount",
    "updated budget": "revised_amount",
    "actual": "actual_spend",
    "actual spend": "actual_spend",
    "actual_spend": "actual_spend",
    "actual cost": "actual_spend",
    "spent": "actual_spend",
    "spend": "actual_spend",
    "committed": "committed_costs",
    "committed costs": "committed_costs",
    "committed_costs": "committed_costs",
    "committed cost": "committed_costs",
    "description": "description",
    "notes": "notes",
    "note": "notes",
}


@dataclass(frozen=True)
class BudgetImportResult:
    """Outcome of a bulk import.

    ``lines`` holds every importable row; ``errors`` one entry per rejected
    row.  The caller decides whether to save a partial import.
    """

    lines: tuple[BudgetLineInput, ...]
    errors: tuple[ValidationError, ...] = ()
    skipped_header: bool = False
    adjustments: tuple[NonNegativeViolation, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _normalize(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "").replace("_", " ")).strip().lower()


def is_header_row(cells: Sequence[Any], keywords: Iterable[str] = HEADER_KEYWORDS) -> bool:
    """True when the row's text contains any header keyword."""
    text = " ".join(str(c) for c in cells if c is not None).lower()
    if not text.strip():
        return False
    return any(kw in text for kw in keywords)


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def resolve_columns(
    header: Sequence[Any],
    column_map: Mapping[str, str] | None = None,
) -> dict[int, str]:
    """
    Column index -> budget field for a header row.

    ``column_map`` (source column name -> field) wins over the built-in
    aliases.  Unrecognised columns are ignored; the first column mapped to
    a field wins.

    Raises:
        UnknownFieldError: if ``column_map`` targets an unknown field.
    """
    explicit: dict[str, str] = {}
    for source, target in (column_map or {}).items():
        if target not in IMPORT_FIELDS:
            raise UnknownFieldError(target, IMPORT_FIELDS)
        explicit[_normalize(source)] = target

    resolved: dict[int, str] = {}
    taken: set[str] = set()
    for idx, name in enumerate(header):
        key = _normalize(name)
        target = explicit.get(key) or COLUMN_ALIASES.get(key)
        if target and target not in taken:
            resolved[idx] = target
            taken.add(target)
    return resolved


def _row_values(cells: Sequence[Any], columns: Mapping[int, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for idx, target in columns.items():
        if idx < len(cells):
            values[target] = cells[idx]
    return values


def _blank(cells: Sequence[Any]) -> bool:
    return all(str(c if c is not None else "").strip() == "" for c in cells)


def import_budget_rows(
    rows: Iterable[Sequence[Any]],
    header: Sequence[Any] | None = None,
    column_map: Mapping[str, str] | None = None,
    header_keywords: Iterable[str] = HEADER_KEYWORDS,
    start_order: int = 0,
    project_id: RecordId = None,
) -> BudgetImportResult:
    """
    Map positional rows to budget lines.

    Args:
        rows: One sequence of cells per source row.
        header: Column names when the source has a known header row.  When
            omitted, the first row is checked against ``header_keywords``
            and skipped if it looks like a header.
        column_map: Extra source column -> field mappings.
        header_keywords: Keywords for header detection.
        start_order: ``display_order`` of the first imported line.
        project_id: Project the lines are imported into; labels the log
            records of the import.

    Raises:
        UnknownFieldError: if ``column_map`` targets an unknown field.
    """
    with LogContext.bind(project_id=project_id):
        return _map_rows(rows, header, column_map, header_keywords, start_order)


def _map_rows(
    rows: Iterable[Sequence[Any]],
    header: Sequence[Any] | None,
    column_map: Mapping[str, str] | None,
    header_keywords: Iterable[str],
    start_order: int,
) -> BudgetImportResult:
    all_rows = [list(r) for r in rows]
    keywords = tuple(k.lower() for k in header_keywords)

    skipped_header = False
    if header is None and all_rows and is_header_row(all_rows[0], keywords):
        header = all_rows.pop(0)
        skipped_header = True

    columns = resolve_columns(header, column_map) if header is not None else {}
    if "category_name" not in columns.values():
        # No usable header: the table's column order.
        columns = dict(enumerate(POSITIONAL_FIELDS))

    logger.info("budget_import_started", extra={
        "row_count": len(all_rows),
        "skipped_header": skipped_header,
        "columns": sorted(set(columns.values())),
    })

    lines: list[BudgetLineInput] = []
    errors: list[ValidationError] = []
    adjustments: list[NonNegativeViolation] = []

    for row_number, cells in enumerate(all_rows, start=1):
        if _blank(cells):
            continue
        values = _row_values(cells, columns)
        category = str(values.get("category_name") or "").strip()
        if not category:
            errors.append(ValidationError(
                code="MISSING_CATEGORY",
                message=f"Row {row_number}: Missing category name",
                field=f"row {row_number}",
                details={"row": row_number},
            ))
            continue

        amounts: dict[str, Any] = {}
        for name in _AMOUNT_FIELDS:
            if name not in values:
                continue
            raw = values[name]
            if name == "revised_amount" and str(raw if raw is not None else "").strip() == "":
                continue  # unset: same as original
            amount, violation = coerce_non_negative(raw, name)
            if violation is not None:
                adjustments.append(violation)
                logger.warning("budget_import_amount_clamped", extra={
                    "row": row_number,
                    "field": name,
                    "raw_value": violation.raw_value,
                    "reason": violation.reason,
                })
            amounts[name] = amount

        lines.append(BudgetLineInput(
            category_name=category,
            original_amount=amounts.get("original_amount", 0),
            revised_amount=amounts.get("revised_amount"),
            actual_spend=amounts.get("actual_spend", 0),
            committed_costs=amounts.get("committed_costs", 0),
            display_order=start_order + len(lines),
            description=_text_or_none(values.get("description")),
            notes=_text_or_none(values.get("notes")),
        ))

    logger.info("budget_import_completed", extra={
        "imported_count": len(lines),
        "error_count": len(errors),
        "adjustment_count": len(adjustments),
    })

    return BudgetImportResult(
        lines=tuple(lines),
        errors=tuple(errors),
        skipped_header=skipped_header,
        adjustments=tuple(adjustments),
    )


def import_budget_text(
    text: str,
    column_map: Mapping[str, str] | None = None,
    header_keywords: Iterable[str] = HEADER_KEYWORDS,
    start_order: int = 0,
    project_id: RecordId = None,
) -> BudgetImportResult:
    """Import pasted spreadsheet text."""
    rows = PastedTextAdapter().parse_rows(text)
    return import_budget_rows(
        rows,
        column_map=column_map,
        header_keywords=header_keywords,
        start_order=start_order,
        project_id=project_id,
    )


_TEXT_SUFFIXES = frozenset({".txt", ".tsv"})
_XLSX_SUFFIXES = frozenset({".xlsx", ".xlsm"})


def import_budget_file(
    path: Path | str,
    options: dict[str, Any] | None = None,
    column_map: Mapping[str, str] | None = None,
    header_keywords: Iterable[str] = HEADER_KEYWORDS,
    start_order: int = 0,
    project_id: RecordId = None,
) -> BudgetImportResult:
    """
    Import a ``.csv``, ``.xlsx``/``.xlsm`` or ``.txt``/``.tsv`` file.

    ``options`` are passed to the source adapter (delimiter, encoding,
    sheet, has_header, ...).  Every record logged during the import
    carries the file name as ``import_source``.

    Raises:
        ValueError: for any other file type.
    """
    source_path = Path(path)
    opts = dict(options or {})
    suffix = source_path.suffix.lower()

    if suffix in _TEXT_SUFFIXES:
        with LogContext.bind(import_source=source_path.name):
            text = source_path.read_text(encoding=opts.get("encoding", "utf-8-sig"))
            return import_budget_text(
                text, column_map=column_map, header_keywords=header_keywords,
                start_order=start_order, project_id=project_id,
            )

    if suffix == ".csv":
        adapter: CsvSourceAdapter | XlsxSourceAdapter = CsvSourceAdapter()
        has_header = opts.get("has_header", True)
    elif suffix in _XLSX_SUFFIXES:
        adapter = XlsxSourceAdapter()
        has_header = True
    else:
        raise ValueError(f"Unsupported budget import file type: '{suffix or source_path.name}'")

    with LogContext.bind(import_source=source_path.name, project_id=project_id):
        records = list(adapter.read(source_path, opts))
        logger.info("budget_import_file_read", extra={"record_count": len(records)})
        if not records:
            return BudgetImportResult(lines=())

        header = list(records[0].keys()) if has_header else None
        rows = [list(r.values()) for r in records]
        return import_budget_rows(
            rows,
            header=header,
            column_map=column_map,
            header_keywords=header_keywords,
            start_order=start_order,
            project_id=project_id,
        )
