"""
recurrence_engines.tracer -- ``@traced_engine`` for the pure engines.

Each call of a decorated engine emits one ``RECURRENCE_ENGINE_TRACE`` log
record with the engine name and version, a fingerprint of the chosen
arguments, the wall time spent and, for list or tuple results, their
length.  The decorator reads its arguments and logs; it has no other
effect, so engines stay pure.

The fingerprint is the first 16 hex characters of the SHA-256 of the
arguments' canonical JSON: object keys and set members sorted, unknown
types by ``repr`` (the engines' inputs are frozen dataclasses).  An
argument the call does not bind counts as ``None``.

Usage::

    @traced_engine("projector", "1.0", fingerprint_fields=("template",))
    def project(template, window_start, window_end):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import json
import logging
import time
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger("recurrence_kernel.engines.tracer")

TRACE_TYPE = "RECURRENCE_ENGINE_TRACE"


def _canonical_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(json.dumps(v, sort_keys=True, default=_canonical_default) for v in value)
    return repr(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    selected = [[name, arguments.get(name)] for name in fingerprint_fields]
    canonical = json.dumps(selected, sort_keys=True, default=_canonical_default)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Args:
        engine_name: Engine identifier (e.g. "projector").
        engine_version: Version string logged with every call.
        fingerprint_fields: Parameter names, positional or keyword, hashed
            into ``input_fingerprint``.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        def fingerprint(args: tuple, kwargs: dict) -> str:
            if not fingerprint_fields:
                return ""
            try:
                bound = signature.bind_partial(*args, **kwargs).arguments
            except TypeError:
                bound = kwargs
            return compute_input_fingerprint(fingerprint_fields, bound)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            extra: dict[str, Any] = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": fingerprint(args, kwargs),
                "duration_ms": elapsed_ms,
                "function": func.__qualname__,
            }
            if isinstance(result, (list, tuple)):
                extra["result_size"] = len(result)
            _logger.info(TRACE_TYPE, extra=extra)
            return result

        return wrapper

    return decorator
