"""Pipeline step model: the linear representation the editor works on.

A pipeline is an ordered list of steps. Each step is one of four variants,
discriminated by its "type" key in saved documents:

    {"type": "Shift", "outputType": "MODEL", "count": 1}
    {"type": "Primitive", "outputType": "INT", "value": 42, "control": "fixed"}
    {"type": "Node", "nodeType": "KSampler", "form": {"seed": 42, ...}, "outputTypes": null,
     "linkedWidgets": null}
    {"type": "Aggregate", "name": "txt2img", "description": "", "form": {...},
     "nodes": [{"type": "KSampler", "outputs": ["LATENT"], "formMapping": {"seed": "seed"}}]}

Saved documents use camelCase keys; Python attributes are snake_case.
The variant set is closed: every consumer switches over it with match and
assert_never so a new variant cannot be silently ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from stepwise.contracts.enums import PrimitiveControl
from stepwise.contracts.errors import InvalidPipeline
from stepwise.contracts.library import CONTROL_AFTER_GENERATE, SEED_FIELD, NodeTypeSchema
from stepwise.contracts.types import LinkTypeId, NodeTypeId

_STEP_CONFIG = ConfigDict(frozen=True, populate_by_name=True)


class ShiftStep(BaseModel):
    """Reorder one type's producer stack so an older producer becomes current.

    Moves the top `count` entries to the bottom of the stack.
    """

    model_config = _STEP_CONFIG

    type: Literal["Shift"] = "Shift"
    output_type: LinkTypeId = Field(alias="outputType")
    count: int = Field(ge=0)


class PrimitiveStep(BaseModel):
    """Produce one literal value of output_type."""

    model_config = _STEP_CONFIG

    type: Literal["Primitive"] = "Primitive"
    output_type: LinkTypeId = Field(alias="outputType")
    value: Any = None
    control: PrimitiveControl = PrimitiveControl.FIXED


class NodeStep(BaseModel):
    """Invoke one node type.

    form maps widget input names to literal values. output_types overrides
    the schema's declared outputs when a generic output was narrowed by
    what it feeds; None entries keep a slot position without producing.
    linked_widgets names widget inputs fed by a link instead of a value.
    """

    model_config = _STEP_CONFIG

    type: Literal["Node"] = "Node"
    node_type: NodeTypeId = Field(alias="nodeType")
    form: dict[str, Any] = Field(default_factory=dict)
    output_types: list[LinkTypeId | None] | None = Field(default=None, alias="outputTypes")
    linked_widgets: list[str] | None = Field(default=None, alias="linkedWidgets")


class EmbeddedNode(BaseModel):
    """One node invocation bundled inside an aggregate step.

    field_mapping maps the embedded node's input name to the aggregate form
    field supplying its value.
    """

    model_config = _STEP_CONFIG

    node_type: NodeTypeId = Field(alias="type")
    output_types: list[LinkTypeId | None] | None = Field(default=None, alias="outputs")
    field_mapping: dict[str, str] = Field(default_factory=dict, alias="formMapping")


class AggregateStep(BaseModel):
    """Authoring convenience: several node invocations behind one form.

    Never survives aggregate expansion.
    """

    model_config = _STEP_CONFIG

    type: Literal["Aggregate"] = "Aggregate"
    name: str
    description: str = ""
    form: dict[str, Any] = Field(default_factory=dict)
    embedded_nodes: list[EmbeddedNode] = Field(default_factory=list, alias="nodes")


WorkflowStep = Annotated[ShiftStep | PrimitiveStep | NodeStep | AggregateStep, Field(discriminator="type")]

_PIPELINE_ADAPTER: TypeAdapter[list[WorkflowStep]] = TypeAdapter(list[WorkflowStep])


def parse_pipeline(data: Any) -> list[WorkflowStep]:
    """Validate a saved pipeline document.

    Raises:
        InvalidPipeline: If the document is not a list of known steps.
    """
    if not isinstance(data, list | tuple):
        raise InvalidPipeline(f"expected a list of steps, got {type(data).__name__}")
    try:
        return _PIPELINE_ADAPTER.validate_python(list(data))
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first["loc"])
        raise InvalidPipeline(f"{loc}: {first['msg']}") from e


def dump_pipeline(steps: Iterable[WorkflowStep]) -> list[dict[str, Any]]:
    """Serialize steps to the JSON-ready saved form (camelCase keys)."""
    dumped: list[dict[str, Any]] = _PIPELINE_ADAPTER.dump_python(list(steps), mode="json", by_alias=True)
    return dumped


def default_node_step(schema: NodeTypeSchema) -> NodeStep:
    """Build the step the editor inserts when a node type is picked.

    The form holds every widget input, required and optional, at its
    default value, so the generator never mistakes one for an open socket.
    """
    form: dict[str, Any] = {}
    for input_schema in schema.inputs:
        if input_schema.is_link:
            continue
        form[input_schema.name] = input_schema.default_value()
        if input_schema.name == SEED_FIELD:
            form[CONTROL_AFTER_GENERATE] = PrimitiveControl.FIXED.value
    return NodeStep(node_type=schema.name, form=form)
