# src/stepwise/core/pipeline/loader.py
"""Entry points for turning loaded documents into pipelines."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import structlog

from stepwise.contracts.errors import InvalidWorkflow
from stepwise.contracts.graph import ANNOTATION_NODE_TYPES, PRIMITIVE_NODE_TYPE, Graph, parse_graph
from stepwise.contracts.library import NodeLibrary
from stepwise.contracts.steps import AggregateStep, NodeStep, WorkflowStep, parse_pipeline
from stepwise.core.config import VirtualLinkSettings
from stepwise.core.pipeline.compiler import compile_graph
from stepwise.core.virtual import resolve_virtual_links

slog = structlog.get_logger(__name__)


def load_library(path: Path) -> NodeLibrary:
    """Read a saved object_info document.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If it is not a JSON object of node type entries.
    """
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"object_info must be a JSON object, got {type(data).__name__}")
    library = NodeLibrary.from_object_info(data)
    slog.debug("library_loaded", path=str(path), node_types=len(library))
    return library


def prepare_workflow(
    graph: Graph | Mapping[str, Any],
    library: NodeLibrary,
    settings: VirtualLinkSettings | None = None,
) -> list[WorkflowStep]:
    """Resolve virtual links, then compile."""
    resolved = resolve_virtual_links(graph, settings)
    return compile_graph(resolved.graph, library)


def _decode(value: Any) -> Any:
    # Image metadata stores these as JSON text
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidWorkflow(f"embedded document is not JSON: {e.msg}") from e
    return value


def load_document(
    data: Any,
    library: NodeLibrary,
    settings: VirtualLinkSettings | None = None,
) -> list[WorkflowStep]:
    """Load a pipeline from any supported document.

    Accepts a saved pipeline (JSON array of steps), a workflow graph, or an
    image metadata mapping with `steps` and/or `workflow` entries; saved
    steps win over the workflow.

    Raises:
        InvalidPipeline: If a steps array is malformed.
        InvalidWorkflow: If the document is none of the above or the graph
            is malformed.
    """
    if isinstance(data, list):
        return parse_pipeline(data)
    if not isinstance(data, Mapping):
        raise InvalidWorkflow(f"unsupported document of type {type(data).__name__}")
    if "nodes" in data or "links" in data:
        return prepare_workflow(data, library, settings)
    if data.get("steps") is not None:
        return parse_pipeline(_decode(data["steps"]))
    if data.get("workflow") is not None:
        workflow = _decode(data["workflow"])
        if not isinstance(workflow, Mapping):
            raise InvalidWorkflow("embedded workflow is not an object")
        return prepare_workflow(workflow, library, settings)
    raise InvalidWorkflow("document is neither a pipeline nor a workflow")


def _unique_missing(node_types: Iterable[str], library: NodeLibrary) -> list[str]:
    missing: list[str] = []
    for node_type in node_types:
        if node_type not in library and node_type not in missing:
            missing.append(node_type)
    return missing


def find_missing_node_types(steps: Iterable[WorkflowStep], library: NodeLibrary) -> list[str]:
    """Node types a pipeline uses that the library lacks, in first-use order."""

    def used() -> Iterable[str]:
        for step in steps:
            if isinstance(step, NodeStep):
                yield step.node_type
            elif isinstance(step, AggregateStep):
                yield from (embedded.node_type for embedded in step.embedded_nodes)

    return _unique_missing(used(), library)


def find_missing_graph_node_types(graph: Graph | Mapping[str, Any], library: NodeLibrary) -> list[str]:
    """Node types a graph uses that the library lacks, in node order.

    Primitive and annotation nodes are editor-only and never reported.
    Resolve virtual links first, or indirection nodes are reported too.
    """
    parsed = parse_graph(graph)
    editor_only = ANNOTATION_NODE_TYPES | {PRIMITIVE_NODE_TYPE}
    return _unique_missing((node.type for node in parsed.nodes if node.type not in editor_only), library)
