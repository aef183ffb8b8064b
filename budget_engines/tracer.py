"""
budget_engines.tracer -- BUDGET_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps a pure budget calculation and emits one
    structured log record per call: engine name and version, a fingerprint
    of the budget figures it was given, how many results it produced and
    how long it took.  Two calls over the same lines, amounts and dates
    share a fingerprint whatever object types carried the figures.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Does NOT introduce I/O into engines; emits a log record only.

Failure modes:
    - A fingerprint field the call does not supply is recorded as "null".
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

_logger = logging.getLogger("budget_kernel.engines.tracer")

# Figures that identify a budget line's state; bookkeeping such as
# last_updated or version does not change an engine's output.
LINE_FIGURES = (
    "budgeted_amount",
    "actual_amount",
    "committed_amount",
    "projected_spend",
    "variance_percentage",
)


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        # 100, 100.0 and 1E+2 are the same amount
        return format(value.normalize(), "f")
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, Mapping):
        pairs = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if hasattr(value, "category_id"):
        figures = ",".join(
            f"{name}={_canonicalize(getattr(value, name))}"
            for name in LINE_FIGURES
            if hasattr(value, name)
        )
        return f"{value.category_id}({figures})"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-char SHA-256 prefix over the named arguments of one call."""
    canonical = "|".join(
        f"{field}={_canonicalize(arguments.get(field))}" for field in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits BUDGET_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "variance").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Parameter names, positional or keyword, whose
            values make up the input fingerprint.  One-shot iterators
            passed for these are materialized into lists before the call.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                for field in fingerprint_fields:
                    if isinstance(bound.arguments.get(field), Iterator):
                        bound.arguments[field] = list(bound.arguments[field])
                fp = compute_input_fingerprint(fingerprint_fields, bound.arguments)
                args, kwargs = bound.args, bound.kwargs

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "BUDGET_ENGINE_TRACE",
                extra={
                    "trace_type": "BUDGET_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "result_count": len(result) if isinstance(result, list) else 1,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
