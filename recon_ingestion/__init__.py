"""
recon_ingestion -- Bulk import of budget lines from pasted text, CSV and XLSX.

Architecture:
    recon_ingestion/ is a top-level package that produces engine inputs
    (``BudgetLineInput``).  Nothing in recon_kernel or recon_engines
    imports from ingestion.
"""

from recon_ingestion.budget_import import (
    BudgetImportResult,
    import_budget_file,
    import_budget_rows,
    import_budget_text,
)

__all__ = [
    "BudgetImportResult",
    "import_budget_file",
    "import_budget_rows",
    "import_budget_text",
]
