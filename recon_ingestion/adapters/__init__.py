"""Source adapters for bulk budget import (file and clipboard I/O only)."""

from recon_ingestion.adapters.base import SourceAdapter, SourceProbe
from recon_ingestion.adapters.csv_adapter import CsvSourceAdapter
from recon_ingestion.adapters.paste_adapter import PastedTextAdapter, split_pasted_line
from recon_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

__all__ = [
    "SourceAdapter",
    "SourceProbe",
    "CsvSourceAdapter",
    "PastedTextAdapter",
    "XlsxSourceAdapter",
    "split_pasted_line",
]
