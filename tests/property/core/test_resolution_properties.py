# tests/property/core/test_resolution_properties.py
"""Property-based tests for virtual link resolution and dependency ordering."""

from __future__ import annotations

import random
from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from stepwise.contracts import dump_pipeline
from stepwise.core.dag import topological_order
from stepwise.core.pipeline import compile_graph
from stepwise.core.virtual import GET_NODE_TYPES, SET_NODE_TYPES, resolve_virtual_links
from tests.property.settings import STANDARD_SETTINGS
from tests.strategies import PROPERTY_LIBRARY, acyclic_graphs, aliased_graphs, dependency_edge_lists


class TestAliasResolution:
    @given(pair=aliased_graphs())
    @STANDARD_SETTINGS
    def test_aliases_compile_like_direct_links(self, pair: tuple[dict[str, Any], dict[str, Any]]) -> None:
        plain, aliased = pair

        resolved = resolve_virtual_links(aliased)

        assert resolved.warnings == ()
        assert not any(node.type in SET_NODE_TYPES | GET_NODE_TYPES for node in resolved.graph.nodes)
        assert dump_pipeline(compile_graph(resolved.graph, PROPERTY_LIBRARY)) == dump_pipeline(
            compile_graph(plain, PROPERTY_LIBRARY)
        )

    @given(pair=aliased_graphs())
    @STANDARD_SETTINGS
    def test_resolution_is_idempotent(self, pair: tuple[dict[str, Any], dict[str, Any]]) -> None:
        once = resolve_virtual_links(pair[1])

        twice = resolve_virtual_links(once.graph)

        assert twice.graph is once.graph
        assert twice.warnings == ()

    @given(graph=acyclic_graphs())
    @STANDARD_SETTINGS
    def test_graph_without_virtual_nodes_untouched(self, graph: dict[str, Any]) -> None:
        result = resolve_virtual_links(graph)

        assert not result.changed
        assert result.graph.to_wire() == resolve_virtual_links(result.graph).graph.to_wire()


class TestTopologicalOrder:
    @given(case=dependency_edge_lists())
    @STANDARD_SETTINGS
    def test_producers_precede_consumers(self, case: tuple[list[int], list[tuple[int, int]]]) -> None:
        nodes, edges = case

        order = topological_order(edges, nodes)

        assert sorted(order) == sorted(nodes)
        position = {node: index for index, node in enumerate(order)}
        assert all(position[u] < position[v] for u, v in edges)

    @given(case=dependency_edge_lists(), seed=st.integers())
    @STANDARD_SETTINGS
    def test_order_independent_of_input_order(self, case: tuple[list[int], list[tuple[int, int]]], seed: int) -> None:
        nodes, edges = case
        shuffled_edges = list(edges)
        shuffled_nodes = list(nodes)
        rng = random.Random(seed)
        rng.shuffle(shuffled_edges)
        rng.shuffle(shuffled_nodes)

        assert topological_order(shuffled_edges, shuffled_nodes) == topological_order(edges, nodes)
