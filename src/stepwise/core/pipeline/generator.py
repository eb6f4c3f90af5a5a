# src/stepwise/core/pipeline/generator.py
"""Pipeline -> graph generator.

The inverse of the compiler, driven by the same stack discipline: node
steps take each missing input from the top of its type's stack, Shift
steps rotate a stack, and every step that creates a node pushes its
outputs. Node and link ids are assigned sequentially; Shift steps consume
no id.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from stepwise.contracts.errors import InvalidPipeline, MissingInput
from stepwise.contracts.graph import PRIMITIVE_NODE_TYPE, Graph, GraphNode, Link, NodeInput, NodeOutput
from stepwise.contracts.library import NodeLibrary, NodeTypeSchema
from stepwise.contracts.steps import AggregateStep, NodeStep, PrimitiveStep, ShiftStep, WorkflowStep
from stepwise.contracts.types import LinkID, LinkTypeId, NodeID, SlotIndex
from stepwise.core.pipeline.aggregates import expand_aggregates
from stepwise.core.pipeline.stacks import TypeStacks

slog = structlog.get_logger(__name__)

FIRST_NODE_ID = 1
FIRST_LINK_ID = 1

PRIMITIVE_OUTPUT_NAME = "value"


@dataclass(frozen=True, slots=True)
class Edge:
    """A generated link, remembering the name of the input it feeds."""

    id: LinkID
    link_type: LinkTypeId
    name: str
    source: NodeID
    source_slot: SlotIndex
    target: NodeID
    target_slot: SlotIndex

    def to_link(self) -> Link:
        return Link(
            id=self.id,
            origin_id=self.source,
            origin_slot=self.source_slot,
            target_id=self.target,
            target_slot=self.target_slot,
            type=self.link_type,
        )


@dataclass(frozen=True, slots=True)
class GraphMetadata:
    """Generated nodes paired with the steps that produced them, plus edges."""

    edges: tuple[Edge, ...]
    nodes: tuple[tuple[GraphNode, WorkflowStep], ...]

    def to_graph(self) -> Graph:
        return Graph(nodes=[node for node, _ in self.nodes], links=[edge.to_link() for edge in self.edges])


@dataclass(slots=True)
class _Placed:
    node_id: NodeID
    step: PrimitiveStep | NodeStep
    outputs: list[tuple[SlotIndex, LinkTypeId]]
    schema: NodeTypeSchema | None = None


def _consume_inputs(
    step: NodeStep,
    schema: NodeTypeSchema,
    node_id: NodeID,
    stacks: TypeStacks,
    next_link_id: int,
) -> list[Edge]:
    # Widgets are wired only when the step names them as linked
    linked_widgets = set(step.linked_widgets or ())
    edges: list[Edge] = []
    for input_schema in schema.inputs:
        if input_schema.name in step.form:
            continue
        if not input_schema.is_link and input_schema.name not in linked_widgets:
            continue
        top = stacks.top(input_schema.link_type)
        if top is None:
            if input_schema.required or not input_schema.is_link:
                raise MissingInput(step.node_type, input_schema.link_type)
            continue
        source, source_slot = top
        edges.append(
            Edge(
                id=LinkID(next_link_id + len(edges)),
                link_type=input_schema.link_type,
                name=input_schema.name,
                source=source,
                source_slot=source_slot,
                target=node_id,
                target_slot=SlotIndex(len(edges)),
            )
        )
    return edges


def _widget_values(step: NodeStep, schema: NodeTypeSchema | None) -> list[Any]:
    # Link inputs recorded as open in the form are not widgets
    values = []
    for name, value in step.form.items():
        input_schema = schema.input(name) if schema is not None else None
        if input_schema is not None and input_schema.is_link:
            continue
        values.append(value)
    return values


def _build_node(placed: _Placed, edges: list[Edge]) -> GraphNode:
    inputs = [NodeInput(name=e.name, type=e.link_type, link=e.id) for e in edges if e.target == placed.node_id]
    outputs = [
        NodeOutput(
            name=placed.schema.output_label(slot) if placed.schema is not None else PRIMITIVE_OUTPUT_NAME,
            type=link_type,
            slot_index=slot,
            links=[e.id for e in edges if e.source == placed.node_id and e.source_slot == slot],
        )
        for slot, link_type in placed.outputs
    ]

    step = placed.step
    widgets_values: list[Any]
    if isinstance(step, PrimitiveStep):
        node_type = PRIMITIVE_NODE_TYPE
        widgets_values = [step.value, step.control.value]
    else:
        node_type = step.node_type
        widgets_values = _widget_values(step, placed.schema)

    return GraphNode(
        id=placed.node_id,
        type=node_type,
        inputs=inputs,
        outputs=outputs,
        widgets_values=widgets_values,
        order=placed.node_id - FIRST_NODE_ID,
    )


def generate_graph_metadata(steps: Iterable[WorkflowStep], library: NodeLibrary) -> GraphMetadata:
    """Generate the graph a pipeline describes.

    Aggregates are expanded first. Positive/negative conditioning inputs use
    the split link types the compiler produces.

    Raises:
        UnknownNodeType: A node step names a type missing from the library.
        MissingInput: A required input finds its stack empty, or a Shift
            names a stack that is missing or too shallow.
    """
    expanded = expand_aggregates(steps)
    library = library.with_split_conditioning()
    stacks = TypeStacks()
    edges: list[Edge] = []
    placed: list[_Placed] = []
    node_id = FIRST_NODE_ID

    for step in expanded:
        match step:
            case ShiftStep():
                try:
                    stacks.rotate(step.output_type, step.count)
                except ValueError:
                    raise MissingInput(step.type, step.output_type) from None
                continue
            case PrimitiveStep():
                stacks.push(step.output_type, (NodeID(node_id), SlotIndex(0)))
                placed.append(_Placed(NodeID(node_id), step, [(SlotIndex(0), step.output_type)]))
            case NodeStep():
                schema = library.require(step.node_type)
                edges.extend(_consume_inputs(step, schema, NodeID(node_id), stacks, FIRST_LINK_ID + len(edges)))
                pushed: list[tuple[SlotIndex, LinkTypeId]] = []
                declared = step.output_types if step.output_types is not None else list(schema.output)
                for slot, link_type in enumerate(declared):
                    if link_type is None:
                        continue
                    stacks.push(link_type, (NodeID(node_id), SlotIndex(slot)))
                    pushed.append((SlotIndex(slot), link_type))
                placed.append(_Placed(NodeID(node_id), step, pushed, schema))
            case AggregateStep():
                raise InvalidPipeline(f"aggregate '{step.name}' survived expansion")
        node_id += 1

    nodes = tuple((_build_node(p, edges), p.step) for p in placed)
    slog.debug("graph_generated", steps=len(expanded), nodes=len(nodes), links=len(edges))
    return GraphMetadata(edges=tuple(edges), nodes=nodes)


def generate_graph(steps: Iterable[WorkflowStep], library: NodeLibrary) -> Graph:
    """Generate a graph model from a pipeline."""
    return generate_graph_metadata(steps, library).to_graph()
