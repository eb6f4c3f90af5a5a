# src/stepwise/core/pipeline/compiler.py
"""Graph -> pipeline compiler.

Walks a normalized graph in dependency order while maintaining one producer
stack per link type. Every linked input must find its producer on top of
its type's stack; when it is buried, a Shift step is emitted first. Nodes
then become Primitive or Node steps and push their outputs.

Compilation is all-or-nothing: the first inconsistency raises and no
partial pipeline is returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from stepwise.contracts.enums import PrimitiveControl
from stepwise.contracts.errors import DuplicateInputType, InvalidWorkflow, MissingInput, MissingSlotIndex
from stepwise.contracts.graph import ANNOTATION_NODE_TYPES, Graph, GraphNode, Link, parse_graph
from stepwise.contracts.library import CONTROL_AFTER_GENERATE, SEED_FIELD, NodeLibrary, NodeTypeSchema, split_conditioning
from stepwise.contracts.steps import NodeStep, PrimitiveStep, ShiftStep, WorkflowStep
from stepwise.contracts.types import LinkID, LinkTypeId, NodeID, SlotIndex
from stepwise.core.dag import dependency_edges, topological_order
from stepwise.core.pipeline.stacks import TypeStacks

slog = structlog.get_logger(__name__)

_PRIMITIVE_CONTROLS = frozenset(control.value for control in PrimitiveControl)


def validate_structure(graph: Graph) -> None:
    """Check link endpoints and output slot indices.

    Raises:
        InvalidWorkflow: If a link references a node that doesn't exist.
        MissingSlotIndex: If an output lacks a slot_index or reuses one.
    """
    node_ids = {node.id for node in graph.nodes}
    for link in graph.links:
        for end, node_id in (("origin", link.origin_id), ("target", link.target_id)):
            if node_id not in node_ids:
                raise InvalidWorkflow(f"link {link.id} {end} references missing node {node_id}")

    for node in graph.nodes:
        seen: set[int] = set()
        for output in node.outputs:
            if output.slot_index is None:
                raise MissingSlotIndex(node.id, node.type, output.name or output.type)
            if output.slot_index in seen:
                raise MissingSlotIndex(
                    node.id, node.type, output.name or output.type, f"reuses slot_index {output.slot_index}"
                )
            seen.add(output.slot_index)


def patch_conditioning(graph: Graph) -> Graph:
    """Give positive/negative conditioning inputs distinct link types."""
    nodes = []
    for node in graph.nodes:
        inputs = [
            node_input.model_copy(update={"type": split_conditioning(node_input.name, node_input.type)})
            for node_input in node.inputs
        ]
        nodes.append(node.model_copy(update={"inputs": inputs}))
    return graph.model_copy(update={"nodes": nodes})


def propagate_link_types(graph: Graph) -> Graph:
    """Copy each consuming input's type onto its link and producing output.

    Some outputs are declared generically and only take a concrete type
    from what they feed; the stack walk indexes by type, so this has to
    happen first.
    """
    nodes = graph.nodes_by_id()
    output_types: dict[tuple[NodeID, int], LinkTypeId] = {}
    links: list[Link] = []
    for link in graph.links:
        target = nodes[link.target_id]
        consumer = next((i for i in target.inputs if i.link == link.id), None)
        if consumer is None and link.target_slot < len(target.inputs):
            consumer = target.inputs[link.target_slot]
        if consumer is None:
            links.append(link)
            continue
        output_types[(link.origin_id, link.origin_slot)] = consumer.type
        links.append(link.model_copy(update={"type": consumer.type}))

    patched = []
    for node in graph.nodes:
        outputs = [
            output.model_copy(update={"type": output_types[(node.id, output.slot_index)]})
            if (node.id, output.slot_index) in output_types
            else output
            for output in node.outputs
        ]
        patched.append(node.model_copy(update={"outputs": outputs}))
    return graph.model_copy(update={"nodes": patched, "links": links})


def effective_output_types(node: GraphNode, schema: NodeTypeSchema) -> list[LinkTypeId | None]:
    """Output types by slot: the graph's where declared, the schema's elsewhere."""
    by_slot: dict[int, LinkTypeId] = {i: t for i, t in enumerate(schema.output)}
    for output in node.outputs:
        if output.slot_index is not None:
            by_slot[output.slot_index] = output.type
    width = max(by_slot, default=-1) + 1
    return [by_slot.get(slot) for slot in range(width)]


def _widget_form(node: GraphNode, schema: NodeTypeSchema) -> dict[str, Any]:
    linked = {node_input.name for node_input in node.linked_inputs()}

    names: list[str] = []
    for input_schema in schema.inputs:
        if input_schema.is_link:
            continue
        names.append(input_schema.name)
        if input_schema.name == SEED_FIELD:
            names.append(CONTROL_AFTER_GENERATE)

    def is_open(name: str) -> bool:
        if name == CONTROL_AFTER_GENERATE:
            return SEED_FIELD not in linked
        return name not in linked

    open_names = [name for name in names if is_open(name)]
    values = list(node.widgets_values.values()) if isinstance(node.widgets_values, dict) else node.widgets_values

    # Editors may still list values for widgets that were converted to linked inputs
    if len(open_names) < len(names) <= len(values):
        form = dict(zip(names, values, strict=False))
        return {name: form[name] for name in open_names}
    return dict(zip(open_names, values, strict=False))


def _linked_widgets(node: GraphNode, schema: NodeTypeSchema) -> list[str] | None:
    linked = {node_input.name for node_input in node.linked_inputs()}
    names = [s.name for s in schema.inputs if not s.is_link and s.name in linked]
    return names or None


def _node_form(node: GraphNode, schema: NodeTypeSchema) -> dict[str, Any]:
    form = _widget_form(node, schema)
    # Unlinked optional sockets are recorded so regeneration leaves them open
    for input_schema in schema.optional_inputs:
        if input_schema.is_link:
            node_input = node.input_named(input_schema.name)
            if node_input is None or node_input.link is None:
                form[input_schema.name] = None
    return form


def _primitive_step(node: GraphNode) -> PrimitiveStep:
    if not node.outputs:
        raise InvalidWorkflow(f"primitive node {node.id} has no output")
    control = node.widget(1, PrimitiveControl.FIXED)
    if control not in _PRIMITIVE_CONTROLS:
        slog.debug("primitive_control_unknown", node_id=node.id, control=control)
        control = PrimitiveControl.FIXED
    return PrimitiveStep(output_type=node.outputs[0].type, value=node.widget(0), control=PrimitiveControl(control))


def _bring_inputs_to_top(
    node: GraphNode,
    links: Mapping[LinkID, Link],
    stacks: TypeStacks,
    pipeline: list[WorkflowStep],
) -> None:
    linked = node.linked_inputs()
    seen: set[LinkTypeId] = set()
    for node_input in linked:
        if node_input.type in seen:
            raise DuplicateInputType(node.type, node_input.type)
        seen.add(node_input.type)

    for node_input in linked:
        link = links.get(LinkID(node_input.link)) if node_input.link is not None else None
        if link is None:
            raise MissingInput(node.type, node_input.type)
        distance = stacks.distance_from_top(node_input.type, link.source)
        if distance is None:
            raise MissingInput(node.type, node_input.type)
        if distance == 0:
            continue
        pipeline.append(ShiftStep(output_type=node_input.type, count=distance))
        stacks.rotate(node_input.type, distance)
        slog.debug(
            "pipeline_shift_emitted",
            node_id=node.id,
            link_type=node_input.type,
            count=distance,
        )


def compile_graph(graph: Graph | Mapping[str, Any], library: NodeLibrary) -> list[WorkflowStep]:
    """Compile a normalized graph into a pipeline.

    Args:
        graph: Graph model or raw wire document. Virtual nodes must already
            be resolved.
        library: Node type catalog.

    Raises:
        InvalidWorkflow: Malformed document, dangling link endpoint or
            missing/duplicate output slot index.
        CycleDetected: The links do not form a DAG.
        UnknownNodeType: A node type is not in the library.
        DuplicateInputType: A node has two linked inputs of one type.
        MissingInput: A linked producer is not on its type's stack.
    """
    parsed = parse_graph(graph)
    validate_structure(parsed)
    parsed = propagate_link_types(patch_conditioning(parsed))

    nodes = parsed.nodes_by_id()
    links = parsed.links_by_id()
    order = topological_order(dependency_edges(parsed.links), [node.id for node in parsed.nodes])

    stacks = TypeStacks()
    pipeline: list[WorkflowStep] = []
    for node_id in order:
        node = nodes[node_id]
        if node.type in ANNOTATION_NODE_TYPES:
            continue

        _bring_inputs_to_top(node, links, stacks, pipeline)

        if node.is_primitive:
            step = _primitive_step(node)
            pipeline.append(step)
            stacks.push(step.output_type, (node.id, SlotIndex(0)))
            continue

        schema = library.require(node.type)
        outputs = effective_output_types(node, schema)
        override = outputs if outputs != list(schema.output) else None
        pipeline.append(
            NodeStep(
                node_type=node.type,
                form=_node_form(node, schema),
                output_types=override,
                linked_widgets=_linked_widgets(node, schema),
            )
        )
        for slot, link_type in enumerate(outputs):
            if link_type is not None:
                stacks.push(link_type, (node.id, SlotIndex(slot)))

    slog.debug("pipeline_compiled", nodes=len(nodes), steps=len(pipeline))
    return pipeline
