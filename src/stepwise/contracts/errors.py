"""Exceptions raised while compiling graphs and generating them back.

Every condition here is fatal to the current compile/generate call: no
partial pipeline or graph is returned. Messages name the node type and link
type involved so the editor can point at the offending node.

Non-fatal conditions (unresolved aliases, broadcasts without targets) are
not exceptions; they are returned as warnings by the virtual link resolver.
"""

from __future__ import annotations

from collections.abc import Sequence


class WorkflowError(ValueError):
    """Base class for all graph/pipeline conversion failures."""

    pass


class InvalidWorkflow(WorkflowError):
    """Raised when a graph document has the wrong top-level shape.

    Covers missing or non-list `nodes`/`links` collections, nodes or links
    that fail model validation, and links referencing nodes that don't exist.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid workflow: {reason}")
        self.reason = reason


class MissingSlotIndex(InvalidWorkflow):
    """Raised when a node output has no explicit slot index, or reuses one.

    Output positions are never guessed from list order: two outputs silently
    aliased to the same slot would reconnect the wrong producer.
    """

    def __init__(self, node_id: int, node_type: str, output_name: str, detail: str = "has no slot_index") -> None:
        super().__init__(f"output '{output_name}' of {node_type} (node {node_id}) {detail}")
        self.node_id = node_id
        self.node_type = node_type
        self.output_name = output_name


class InvalidPipeline(WorkflowError):
    """Raised when a saved pipeline document cannot be parsed into steps."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid pipeline: {reason}")
        self.reason = reason


class CycleDetected(WorkflowError):
    """Raised when the node dependency graph is not acyclic."""

    def __init__(self, cycle: Sequence[tuple[int, int]] = ()) -> None:
        if cycle:
            path = " -> ".join(str(edge[0]) for edge in cycle)
            message = f"Workflow contains a cycle: {path} -> {cycle[0][0]}"
        else:
            message = "Workflow contains a cycle"
        super().__init__(message)
        self.cycle = tuple(cycle)


class UnknownNodeType(WorkflowError):
    """Raised when a node references a type absent from the node library."""

    def __init__(self, node_type: str) -> None:
        super().__init__(f"Unknown node type {node_type}")
        self.node_type = node_type


class DuplicateInputType(WorkflowError):
    """Raised when a node has two linked inputs sharing one link type.

    The per-type stack model cannot tell which same-typed slot a connection
    refers to.
    """

    def __init__(self, node_type: str, link_type: str) -> None:
        super().__init__(f"Unsupported duplicate input type {link_type} was found at {node_type}")
        self.node_type = node_type
        self.link_type = link_type


class MissingInput(WorkflowError):
    """Raised when a required producer is not where the stack says it is.

    The graph or pipeline is internally inconsistent: a link that doesn't
    exist, a producer that was never emitted, or a step order that violates
    dependency order.
    """

    def __init__(self, node_type: str, link_type: str) -> None:
        super().__init__(f"Missing input of type {link_type} for {node_type}")
        self.node_type = node_type
        self.link_type = link_type
