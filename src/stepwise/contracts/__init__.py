"""Shared contracts: ids, vocabularies, errors, graph, library and steps.

Leaf package: nothing here imports from stepwise.core.
"""

from stepwise.contracts.enums import PrimitiveControl, WidgetKind
from stepwise.contracts.errors import (
    CycleDetected,
    DuplicateInputType,
    InvalidPipeline,
    InvalidWorkflow,
    MissingInput,
    MissingSlotIndex,
    UnknownNodeType,
    WorkflowError,
)
from stepwise.contracts.graph import (
    PRIMITIVE_NODE_TYPE,
    Graph,
    GraphNode,
    Link,
    NodeInput,
    NodeOutput,
    parse_graph,
)
from stepwise.contracts.library import (
    NEGATIVE_CONDITIONING,
    POSITIVE_CONDITIONING,
    NodeInputSchema,
    NodeLibrary,
    NodeTypeSchema,
)
from stepwise.contracts.steps import (
    AggregateStep,
    EmbeddedNode,
    NodeStep,
    PrimitiveStep,
    ShiftStep,
    WorkflowStep,
    default_node_step,
    dump_pipeline,
    parse_pipeline,
)
from stepwise.contracts.types import LinkID, LinkTypeId, NodeID, NodeTypeId, Producer, SlotIndex

__all__ = [
    "NEGATIVE_CONDITIONING",
    "POSITIVE_CONDITIONING",
    "PRIMITIVE_NODE_TYPE",
    "AggregateStep",
    "CycleDetected",
    "DuplicateInputType",
    "EmbeddedNode",
    "Graph",
    "GraphNode",
    "InvalidPipeline",
    "InvalidWorkflow",
    "Link",
    "LinkID",
    "LinkTypeId",
    "MissingInput",
    "MissingSlotIndex",
    "NodeID",
    "NodeInput",
    "NodeInputSchema",
    "NodeLibrary",
    "NodeOutput",
    "NodeStep",
    "NodeTypeId",
    "NodeTypeSchema",
    "PrimitiveControl",
    "PrimitiveStep",
    "Producer",
    "ShiftStep",
    "SlotIndex",
    "UnknownNodeType",
    "WidgetKind",
    "WorkflowError",
    "WorkflowStep",
    "default_node_step",
    "dump_pipeline",
    "parse_graph",
    "parse_pipeline",
]
