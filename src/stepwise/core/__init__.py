# src/stepwise/core/__init__.py
"""Core conversion machinery plus logging, configuration and canonical JSON."""

from stepwise.core.canonical import canonical_json, pipeline_fingerprint, stable_hash
from stepwise.core.config import StepwiseSettings, load_settings
from stepwise.core.logging import configure_logging

__all__ = [
    "StepwiseSettings",
    "canonical_json",
    "configure_logging",
    "load_settings",
    "pipeline_fingerprint",
    "stable_hash",
]
