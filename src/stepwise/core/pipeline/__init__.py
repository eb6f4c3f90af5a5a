# src/stepwise/core/pipeline/__init__.py
"""Graph <-> pipeline conversion."""

from stepwise.core.pipeline.aggregates import expand_aggregates
from stepwise.core.pipeline.compiler import compile_graph, effective_output_types, patch_conditioning, propagate_link_types
from stepwise.core.pipeline.generator import Edge, GraphMetadata, generate_graph, generate_graph_metadata
from stepwise.core.pipeline.loader import (
    find_missing_graph_node_types,
    find_missing_node_types,
    load_document,
    load_library,
    prepare_workflow,
)
from stepwise.core.pipeline.prompt import create_prompt, create_prompt_request, create_workflow
from stepwise.core.pipeline.stacks import TypeStacks

__all__ = [
    "Edge",
    "GraphMetadata",
    "TypeStacks",
    "compile_graph",
    "create_prompt",
    "create_prompt_request",
    "create_workflow",
    "effective_output_types",
    "expand_aggregates",
    "find_missing_graph_node_types",
    "find_missing_node_types",
    "generate_graph",
    "generate_graph_metadata",
    "load_document",
    "load_library",
    "patch_conditioning",
    "prepare_workflow",
    "propagate_link_types",
]
