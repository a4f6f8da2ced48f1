"""
recon_engines.tracer -- ``@traced_engine``: one RECON_ENGINE_TRACE record
per engine call.

Responsibility:
    Identify every engine invocation in the logs: which engine and
    version ran, on which inputs (``input_fingerprint``), how long it took
    and how it ended.  Records are emitted on ``recon_kernel.engines.tracer``
    and inherit whatever project / application context the caller bound.

Architecture position:
    Engines -- support for the pure calculation layer.  Reads arguments
    and writes one log record; never touches the inputs.

Fingerprints:
    Budget lines and schedule-of-values lines are frozen dataclasses
    holding Decimals, so the canonical form is built from their fields
    rather than ``repr``.  Decimals are normalized first: an amount keyed
    as ``50`` and one keyed as ``50.00`` fingerprint the same.  Mapping keys
    are sorted; the digest is SHA-256 cut to 16 hex chars.

Outcome:
    ``outcome`` is ``"ok"`` when the engine returned and ``"error"`` when
    it raised; the exception is logged with the trace and re-raised
    unchanged.  ``summarize`` may add a few result fields (a validation
    verdict, a status) to the ``"ok"`` record.

    ``bind_context`` lifts id parameters into the log context, so an
    application id passed to ``validate_application`` appears on every
    record of that validation, the nested per-line traces included.

Usage:
    @traced_engine(
        "payment_application", "1.0",
        fingerprint_fields=("lines", "proposed_percents"),
        summarize=lambda r: {"is_valid": r.is_valid},
    )
    def validate_application(lines, proposed_percents): ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from recon_kernel.logging_config import LogContext

_logger = logging.getLogger("recon_kernel.engines.tracer")

TRACE_TYPE = "RECON_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        return str(value.normalize()) if value.is_finite() else str(value)
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, (str, int, float)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        parts = (
            f"{f.name}={_canonicalize(getattr(value, f.name))}"
            for f in dataclasses.fields(value)
        )
        return f"{type(value).__name__}(" + ",".join(parts) + ")"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char digest of the named arguments; absent ones count as null."""
    canonical = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Callable[[Any], Mapping[str, Any]] | None = None,
    bind_context: tuple[str, ...] = (),
) -> Callable:
    """
    Wrap an engine function so each call emits RECON_ENGINE_TRACE.

    ``bind_context`` names parameters (``project_id``, ``application_id``)
    whose values are bound into LogContext for the duration of the call,
    so the trace and every record the engine logs carry them.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def _arguments(args: tuple, kwargs: dict) -> Mapping[str, Any]:
            try:
                return signature.bind_partial(*args, **kwargs).arguments
            except TypeError:
                # The call itself will raise the real signature error.
                return kwargs

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            arguments = _arguments(args, kwargs)
            context = {name: arguments.get(name) for name in bind_context}
            trace: dict[str, Any] = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, arguments)
                    if fingerprint_fields else ""
                ),
                "function": func.__qualname__,
            }
            with LogContext.bind(**context):
                started = time.monotonic()
                try:
                    result = func(*args, **kwargs)
                except Exception:
                    trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
                    trace["outcome"] = "error"
                    _logger.warning(TRACE_TYPE, extra=trace, exc_info=True)
                    raise

                trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
                trace["outcome"] = "ok"
                if summarize is not None:
                    trace.update(summarize(result))
                _logger.info(TRACE_TYPE, extra=trace)
            return result

        return wrapper

    return decorator
