# src/stepwise/core/canonical.py
"""
Canonical JSON serialization for deterministic hashing.

Saved pipelines are diffed and compared by fingerprint, so two pipelines
that differ only in key order or whitespace must hash identically.
Serialization follows RFC 8785/JCS (rfc8785 package).

NaN and Infinity are rejected, not silently converted: a form value that
cannot round-trip through JSON must fail loudly.
"""

from __future__ import annotations

import hashlib
import math
from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from stepwise.contracts.steps import WorkflowStep

# RFC 8785 numbers are IEEE doubles; larger integers (64-bit seeds) are tagged
_MAX_SAFE_INTEGER = 2**53 - 1


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively convert a structure to JSON-safe primitives.

    Raises:
        ValueError: If data contains NaN or Infinity
    """
    if isinstance(data, float):
        if math.isnan(data) or math.isinf(data):
            raise ValueError(f"Cannot canonicalize non-finite float: {data}. Use None for missing values, not NaN/Infinity.")
        return data
    if isinstance(data, int) and not isinstance(data, bool) and abs(data) > _MAX_SAFE_INTEGER:
        return {"__bigint__": str(data)}
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, dict):
        return {str(k): _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    return data


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON (no whitespace, sorted keys).

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of obj."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


def pipeline_fingerprint(steps: Iterable[WorkflowStep]) -> str:
    """Fingerprint of a pipeline in its saved form.

    Equal fingerprints mean the pipelines serialize to identical documents.
    """
    from stepwise.contracts.steps import dump_pipeline

    return stable_hash(dump_pipeline(steps))
