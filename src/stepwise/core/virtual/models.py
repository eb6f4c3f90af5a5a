# src/stepwise/core/virtual/models.py
"""Result type, converter protocol and the working copy converters edit.

Graph models are frozen, so converters stage their edits on a GraphEditor
(mutable node inputs, link list, removal marks) and build a fresh Graph
once at the end.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from stepwise.contracts.graph import Graph, GraphNode, Link, NodeInput
from stepwise.contracts.types import LinkID, LinkTypeId, NodeID, SlotIndex

slog = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """Outcome of one or more virtual link passes.

    Attributes:
        graph: The rewritten graph (the input object itself when nothing changed).
        warnings: Non-fatal conditions, in the order they were found.
        removed_node_ids: Ids of indirection nodes deleted from the graph.
        added_links: Number of direct links synthesized.
    """

    graph: Graph
    warnings: tuple[str, ...] = ()
    removed_node_ids: tuple[NodeID, ...] = ()
    added_links: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.removed_node_ids) or self.added_links > 0

    def merge(self, later: ResolutionResult) -> ResolutionResult:
        """Combine with the result of a pass that ran on self.graph."""
        return ResolutionResult(
            graph=later.graph,
            warnings=self.warnings + later.warnings,
            removed_node_ids=self.removed_node_ids + later.removed_node_ids,
            added_links=self.added_links + later.added_links,
        )


class VirtualConverter(Protocol):
    """One family of indirection nodes and how to eliminate it."""

    name: str

    def detect(self, graph: Graph) -> bool:
        """Return True if the graph contains nodes this converter removes."""
        ...

    def convert(self, graph: Graph) -> ResolutionResult:
        """Rewrite the graph so none of this converter's nodes remain."""
        ...


@dataclass
class GraphEditor:
    """Mutable staging area over a frozen graph."""

    graph: Graph
    converter: str
    inputs: dict[NodeID, list[NodeInput]] = field(init=False)
    links: dict[LinkID, Link] = field(init=False)
    removed: list[NodeID] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    added_links: int = 0

    def __post_init__(self) -> None:
        self.inputs = {node.id: list(node.inputs) for node in self.graph.nodes}
        self.links = {link.id: link for link in self.graph.links}

    def warn(self, event: str, message: str, **context: object) -> None:
        self.warnings.append(message)
        slog.warning(event, converter=self.converter, **context)

    def mark_removed(self, node_id: NodeID) -> None:
        if node_id not in self.removed:
            self.removed.append(node_id)

    def drop_link(self, link_id: LinkID) -> None:
        self.links.pop(link_id, None)

    def relink(self, link_id: LinkID, origin_id: NodeID, origin_slot: SlotIndex) -> None:
        """Point an existing link at a different producer, keeping its id."""
        self.links[link_id] = self.links[link_id].model_copy(update={"origin_id": origin_id, "origin_slot": origin_slot})

    def connect(
        self,
        origin_id: NodeID,
        origin_slot: SlotIndex,
        target_id: NodeID,
        target_slot: int,
        link_type: LinkTypeId,
    ) -> Link:
        """Create a link into an open input and record it on that input."""
        link_id = LinkID(max(self.links, default=0) + 1)
        link = Link(
            id=link_id,
            origin_id=origin_id,
            origin_slot=origin_slot,
            target_id=target_id,
            target_slot=SlotIndex(target_slot),
            type=link_type,
        )
        self.links[link_id] = link
        target_inputs = self.inputs[target_id]
        target_inputs[target_slot] = target_inputs[target_slot].model_copy(update={"link": link_id})
        self.added_links += 1
        return link

    def finish(self) -> ResolutionResult:
        """Delete marked nodes, drop dangling links and rebuild the graph."""
        removed = set(self.removed)
        nodes = [
            node.model_copy(update={"inputs": self.inputs[node.id]})
            for node in self.graph.nodes
            if node.id not in removed
        ]
        graph = reconcile_links(self.graph.model_copy(update={"nodes": nodes, "links": list(self.links.values())}))
        slog.debug(
            "virtual_pass_finished",
            converter=self.converter,
            removed_nodes=len(self.removed),
            added_links=self.added_links,
            warnings=len(self.warnings),
        )
        return ResolutionResult(
            graph=graph,
            warnings=tuple(self.warnings),
            removed_node_ids=tuple(self.removed),
            added_links=self.added_links,
        )


def reconcile_links(graph: Graph) -> Graph:
    """Drop links with a missing endpoint and resync slot bookkeeping.

    Each input keeps its link only if that link survived. Each output's
    links list is rebuilt from the surviving links leaving its slot.
    """
    node_ids = {node.id for node in graph.nodes}
    links = [link for link in graph.links if link.origin_id in node_ids and link.target_id in node_ids]
    surviving = {link.id for link in links}

    consumers: dict[tuple[NodeID, int], list[LinkID]] = {}
    for link in links:
        consumers.setdefault((link.origin_id, link.origin_slot), []).append(link.id)

    nodes: list[GraphNode] = []
    for node in graph.nodes:
        inputs = [
            node_input.model_copy(update={"link": None})
            if node_input.link is not None and node_input.link not in surviving
            else node_input
            for node_input in node.inputs
        ]
        outputs = []
        for position, output in enumerate(node.outputs):
            slot = output.slot_index if output.slot_index is not None else position
            linked = consumers.get((node.id, slot), [])
            if output.links is None and not linked:
                outputs.append(output)
            else:
                outputs.append(output.model_copy(update={"links": linked}))
        nodes.append(node.model_copy(update={"inputs": inputs, "outputs": outputs}))

    return graph.model_copy(update={"nodes": nodes, "links": links})
