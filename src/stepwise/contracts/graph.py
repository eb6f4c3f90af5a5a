"""Graph wire model: nodes with typed slots wired by links.

This is the format the generation server and other editors exchange:

    {
      "nodes": [
        {"id": 4, "type": "CheckpointLoaderSimple",
         "outputs": [{"name": "MODEL", "type": "MODEL", "links": [1], "slot_index": 0}],
         "widgets_values": ["sd15.safetensors"]},
        {"id": 3, "type": "KSampler",
         "inputs": [{"name": "model", "type": "MODEL", "link": 1}],
         "widgets_values": [42, "fixed", 20, 8.0, "euler", "normal", 1.0]}
      ],
      "links": [[1, 4, 0, 3, 0, "MODEL"]]
    }

Links arrive either as six-element arrays or as objects with
origin_id/origin_slot/target_id/target_slot keys; they are always written
back as arrays. Unknown fields (pos, size, flags, ...) are preserved so a
graph survives a load/save cycle.

All models are frozen. Transformations build new objects with
model_copy(update=...) instead of mutating.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_serializer,
    model_validator,
)

from stepwise.contracts.errors import InvalidWorkflow
from stepwise.contracts.types import LinkID, LinkTypeId, NodeID, NodeTypeId, SlotIndex

PRIMITIVE_NODE_TYPE = NodeTypeId("PrimitiveNode")

# Editor-only annotation nodes: no slots, nothing to compile
ANNOTATION_NODE_TYPES: frozenset[str] = frozenset({"Note", "MarkdownNote"})

ANY_LINK_TYPE = LinkTypeId("*")

_LINK_FIELDS = ("id", "origin_id", "origin_slot", "target_id", "target_slot", "type")


class NodeInput(BaseModel):
    """An input slot on a graph node. No link means a literal value is used."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    type: LinkTypeId
    link: LinkID | None = None


class NodeOutput(BaseModel):
    """An output slot on a graph node and the links consuming it."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = ""
    type: LinkTypeId
    slot_index: SlotIndex | None = None
    links: list[LinkID] | None = None


class GraphNode(BaseModel):
    """A node instance in a graph."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: NodeID
    type: NodeTypeId
    title: str | None = None
    inputs: list[NodeInput] = Field(default_factory=list)
    outputs: list[NodeOutput] = Field(default_factory=list)
    widgets_values: list[Any] | dict[str, Any] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)

    @field_validator("inputs", "outputs", "widgets_values", "properties", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "properties" else []
        return value

    @property
    def is_primitive(self) -> bool:
        return self.type == PRIMITIVE_NODE_TYPE

    @property
    def display_title(self) -> str:
        """Title shown in the editor, falling back to the type name."""
        return self.title or self.type

    def linked_inputs(self) -> list[NodeInput]:
        return [node_input for node_input in self.inputs if node_input.link is not None]

    def input_named(self, name: str) -> NodeInput | None:
        for node_input in self.inputs:
            if node_input.name == name:
                return node_input
        return None

    def widget(self, index: int, default: Any = None) -> Any:
        """Return the index-th widget value, or default when absent."""
        if isinstance(self.widgets_values, dict):
            values = list(self.widgets_values.values())
        else:
            values = self.widgets_values
        return values[index] if index < len(values) else default


class Link(BaseModel):
    """A directed connection from an output slot to an input slot."""

    model_config = ConfigDict(frozen=True)

    id: LinkID
    origin_id: NodeID
    origin_slot: SlotIndex
    target_id: NodeID
    target_slot: SlotIndex
    type: LinkTypeId = ANY_LINK_TYPE

    @model_validator(mode="before")
    @classmethod
    def _from_array(cls, data: Any) -> Any:
        if isinstance(data, list | tuple):
            if len(data) < 5:
                raise ValueError(f"link array needs at least 5 elements, got {len(data)}")
            return dict(zip(_LINK_FIELDS, data, strict=False))
        return data

    @model_serializer
    def _to_array(self) -> list[Any]:
        return [self.id, self.origin_id, self.origin_slot, self.target_id, self.target_slot, self.type]

    @property
    def source(self) -> tuple[NodeID, SlotIndex]:
        return (self.origin_id, self.origin_slot)


class Graph(BaseModel):
    """A whole workflow graph."""

    model_config = ConfigDict(frozen=True, extra="allow")

    nodes: list[GraphNode]
    links: list[Link]
    groups: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("links", mode="before")
    @classmethod
    def _drop_null_links(cls, value: Any) -> Any:
        # Editors leave null holes behind when links are deleted
        if isinstance(value, list):
            return [link for link in value if link is not None]
        return value

    def nodes_by_id(self) -> dict[NodeID, GraphNode]:
        return {node.id: node for node in self.nodes}

    def links_by_id(self) -> dict[LinkID, Link]:
        return {link.id: link for link in self.links}

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-ready wire form."""
        return self.model_dump(mode="json")


def _summarize_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    more = f" (+{error.error_count() - 1} more)" if error.error_count() > 1 else ""
    return f"{loc}: {first['msg']}{more}"


def parse_graph(data: Graph | Mapping[str, Any] | None) -> Graph:
    """Validate a raw graph document.

    Raises:
        InvalidWorkflow: If the document is not an object, lacks a valid
            nodes or links array, or any node/link fails validation.
    """
    if isinstance(data, Graph):
        return data
    if data is None:
        raise InvalidWorkflow("workflow is null")
    if not isinstance(data, Mapping):
        raise InvalidWorkflow(f"expected an object, got {type(data).__name__}")
    if not isinstance(data.get("nodes"), list):
        raise InvalidWorkflow("workflow missing valid nodes array")
    if not isinstance(data.get("links"), list):
        raise InvalidWorkflow("workflow missing valid links array")
    try:
        return Graph.model_validate(data)
    except ValidationError as e:
        raise InvalidWorkflow(_summarize_validation_error(e)) from e
