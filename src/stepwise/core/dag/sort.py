# src/stepwise/core/dag/sort.py
"""Topological ordering of node ids by producer -> consumer edges.

Wraps NetworkX. Ties among independent nodes are broken by ascending node
id so the same graph always compiles to the same pipeline.
"""

from __future__ import annotations

from collections.abc import Iterable

import networkx as nx

from stepwise.contracts.errors import CycleDetected
from stepwise.contracts.graph import Link
from stepwise.contracts.types import NodeID


def dependency_edges(links: Iterable[Link]) -> list[tuple[NodeID, NodeID]]:
    """Project links onto (producer, consumer) node pairs."""
    return [(link.origin_id, link.target_id) for link in links]


def topological_order(
    edges: Iterable[tuple[NodeID, NodeID]],
    nodes: Iterable[NodeID] = (),
) -> list[NodeID]:
    """Return every referenced node id, producers before their consumers.

    Args:
        edges: (producer, consumer) pairs.
        nodes: Extra node ids to include even when no edge touches them.

    Raises:
        CycleDetected: If the edges do not form a DAG. A self-loop counts.
    """
    graph: nx.DiGraph[NodeID] = nx.DiGraph()
    graph.add_nodes_from(nodes)
    graph.add_edges_from(edges)

    try:
        return list(nx.lexicographical_topological_sort(graph))
    except nx.NetworkXUnfeasible:
        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            raise CycleDetected() from None
        raise CycleDetected([(u, v) for u, v, *_ in cycle]) from None
