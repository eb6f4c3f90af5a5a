# tests/strategies/__init__.py
"""Hypothesis strategies for property-based tests.

Re-exports commonly used strategies for convenience:
    from tests.strategies import acyclic_graphs, PROPERTY_LIBRARY
"""

from tests.strategies.graphs import PROPERTY_LIBRARY, PROPERTY_OBJECT_INFO, acyclic_graphs, aliased_graphs, dependency_edge_lists

__all__ = [
    "PROPERTY_LIBRARY",
    "PROPERTY_OBJECT_INFO",
    "acyclic_graphs",
    "aliased_graphs",
    "dependency_edge_lists",
]
