# src/stepwise/core/dag/__init__.py
"""Dependency ordering of graph nodes."""

from stepwise.core.dag.sort import dependency_edges, topological_order

__all__ = [
    "dependency_edges",
    "topological_order",
]
