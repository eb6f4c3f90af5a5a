# src/stepwise/core/virtual/aliases.py
"""Set/get variable nodes.

A set node binds the link feeding it to a variable named by its first
widget value; any number of get nodes of that variable stand in for the
original producer. Links leaving a get node (or a set node's pass-through
output) are rewritten to start at the real producer, keeping their ids.
Set and get nodes and the links into set nodes are then removed.
"""

from __future__ import annotations

import structlog

from stepwise.contracts.graph import Graph, GraphNode
from stepwise.contracts.types import NodeID, Producer, SlotIndex
from stepwise.core.virtual.models import GraphEditor, ResolutionResult

slog = structlog.get_logger(__name__)

SET_NODE_TYPES: frozenset[str] = frozenset({"SetNode", "easy setNode"})
GET_NODE_TYPES: frozenset[str] = frozenset({"GetNode", "easy getNode"})


def _variable(node: GraphNode) -> str | None:
    name = node.widget(0)
    return name if isinstance(name, str) and name else None


class AliasConverter:
    """Replaces set/get pairs with direct links."""

    name = "alias"

    def detect(self, graph: Graph) -> bool:
        return any(node.type in SET_NODE_TYPES or node.type in GET_NODE_TYPES for node in graph.nodes)

    def convert(self, graph: Graph) -> ResolutionResult:
        editor = GraphEditor(graph, self.name)
        set_nodes = {node.id: node for node in graph.nodes if node.type in SET_NODE_TYPES}
        get_nodes = {node.id: node for node in graph.nodes if node.type in GET_NODE_TYPES}

        # The link feeding each set node; the first one wins when an editor left several
        feeds: dict[NodeID, Producer] = {}
        for link in graph.links:
            if link.target_id in set_nodes and link.target_id not in feeds:
                feeds[link.target_id] = link.source

        variables: dict[str, NodeID] = {}
        for node in set_nodes.values():
            name = _variable(node)
            if name is None:
                editor.warn("virtual_alias_unnamed", f"Set node {node.id} has no variable name", node_id=node.id)
                continue
            if name in variables:
                editor.warn(
                    "virtual_alias_redefined",
                    f"Variable '{name}' is set by nodes {variables[name]} and {node.id}; using {node.id}",
                    variable=name,
                    node_id=node.id,
                )
            variables[name] = node.id

        def resolve(origin: Producer) -> Producer | None:
            seen: set[NodeID] = set()
            node_id, slot = origin
            while node_id in set_nodes or node_id in get_nodes:
                if node_id in seen:
                    return None
                seen.add(node_id)
                if node_id in get_nodes:
                    name = _variable(get_nodes[node_id])
                    if name is None or name not in variables:
                        return None
                    node_id = variables[name]
                if node_id not in feeds:
                    return None
                node_id, slot = feeds[node_id]
            return (node_id, SlotIndex(slot))

        for link in graph.links:
            if link.target_id in set_nodes:
                editor.drop_link(link.id)
                continue
            if link.origin_id not in set_nodes and link.origin_id not in get_nodes:
                continue
            producer = resolve(link.source)
            if producer is None:
                alias = set_nodes.get(link.origin_id) or get_nodes[link.origin_id]
                editor.warn(
                    "virtual_alias_unresolved",
                    f"No producer found for variable '{_variable(alias)}' used by node {link.target_id}",
                    variable=_variable(alias),
                    alias_node_id=alias.id,
                    target_node_id=link.target_id,
                )
                editor.drop_link(link.id)
                continue
            editor.relink(link.id, *producer)
            slog.debug(
                "virtual_alias_rewired",
                link_id=link.id,
                origin_id=producer[0],
                origin_slot=producer[1],
                target_id=link.target_id,
            )

        for node_id in (*set_nodes, *get_nodes):
            editor.mark_removed(node_id)
        return editor.finish()
