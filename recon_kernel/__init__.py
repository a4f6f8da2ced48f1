"""
recon_kernel -- ambient primitives shared by the reconciliation engines.

Provides structured JSON logging (``logging_config``), the typed exception
hierarchy (``exceptions``), validation result DTOs and Decimal value
coercion (``domain``).  Contains no budget or billing logic of its own.
"""
