# src/stepwise/core/pipeline/prompt.py
"""Build the documents submitted to the generation server.

A prompt request maps each stringified node id to its class type and
inputs. Linked inputs reference their producer as [node id string, slot].
Primitive nodes exist only in the editor: their values are inlined into the
inputs they feed and they are not submitted themselves.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from stepwise.contracts.library import CONTROL_AFTER_GENERATE
from stepwise.contracts.steps import NodeStep, PrimitiveStep, WorkflowStep, dump_pipeline
from stepwise.contracts.types import NodeID
from stepwise.core.pipeline.generator import GraphMetadata

# One id per process, like a browser session
DEFAULT_CLIENT_ID = uuid.uuid4().hex


def create_workflow(metadata: GraphMetadata) -> dict[str, Any]:
    """Return the generated graph in wire form."""
    return metadata.to_graph().to_wire()


def create_prompt(metadata: GraphMetadata) -> dict[str, dict[str, Any]]:
    """Return the prompt mapping: node id -> {inputs, class_type}."""
    primitives: dict[NodeID, Any] = {
        node.id: step.value for node, step in metadata.nodes if isinstance(step, PrimitiveStep)
    }

    prompt: dict[str, dict[str, Any]] = {}
    for node, step in metadata.nodes:
        if not isinstance(step, NodeStep):
            continue
        # None marks an open socket, not a widget value
        inputs: dict[str, Any] = {
            name: value for name, value in step.form.items() if name != CONTROL_AFTER_GENERATE and value is not None
        }
        for edge in metadata.edges:
            if edge.target != node.id:
                continue
            if edge.source in primitives:
                inputs[edge.name] = primitives[edge.source]
            else:
                inputs[edge.name] = [str(edge.source), edge.source_slot]
        prompt[str(node.id)] = {"inputs": inputs, "class_type": node.type}
    return prompt


def create_prompt_request(
    metadata: GraphMetadata,
    steps: Sequence[WorkflowStep] | None = None,
    client_id: str | None = None,
) -> dict[str, Any]:
    """Assemble a complete prompt submission.

    The generated graph (and the pipeline, when given) ride along as
    extra_pnginfo so saved images can be reopened in the editor.
    """
    extra_pnginfo: dict[str, Any] = {"workflow": create_workflow(metadata)}
    if steps is not None:
        extra_pnginfo["steps"] = dump_pipeline(steps)
    return {
        "client_id": client_id or DEFAULT_CLIENT_ID,
        "prompt": create_prompt(metadata),
        "extra_data": {"extra_pnginfo": extra_pnginfo},
    }
