"""Node library: the read-only catalog of node type schemas.

The catalog is fetched from the generation server's object_info endpoint and
treated as opaque input. Each entry looks like:

    "KSampler": {
        "input": {
            "required": {
                "model": ["MODEL"],
                "seed": ["INT", {"default": 0, "min": 0, "max": 18446744073709551615}],
                "sampler_name": [["euler", "dpmpp_2m"], {}],
                "positive": ["CONDITIONING"],
            },
            "optional": {}
        },
        "input_order": {"required": ["model", "seed", "sampler_name", "positive"]},
        "output": ["LATENT"],
        "output_name": ["LATENT"],
    }

An input schema whose first element is a widget kind (INT, FLOAT, STRING,
BOOLEAN) or a list of choices is a literal widget; anything else names the
link type of a socket. Input order matters: it determines how widget values
are zipped into forms and how input slots are numbered.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from stepwise.contracts.enums import WidgetKind
from stepwise.contracts.errors import UnknownNodeType
from stepwise.contracts.types import LinkTypeId, NodeTypeId

GENERIC_CONDITIONING = LinkTypeId("CONDITIONING")
POSITIVE_CONDITIONING = LinkTypeId("POSITIVE_CONDITIONING")
NEGATIVE_CONDITIONING = LinkTypeId("NEGATIVE_CONDITIONING")

# Producers are indexed by type alone, so the two conditioning channels of a
# sampler need distinct types or they collide on one stack.
CONDITIONING_SPLIT: Mapping[str, LinkTypeId] = MappingProxyType(
    {
        "positive": POSITIVE_CONDITIONING,
        "negative": NEGATIVE_CONDITIONING,
    }
)

SEED_FIELD = "seed"
CONTROL_AFTER_GENERATE = "control_after_generate"

_WIDGET_KINDS = frozenset(kind.value for kind in WidgetKind)


def split_conditioning(input_name: str, link_type: LinkTypeId) -> LinkTypeId:
    """Return the channel-specific conditioning type for an input, if any."""
    if link_type == GENERIC_CONDITIONING and input_name in CONDITIONING_SPLIT:
        return CONDITIONING_SPLIT[input_name]
    return link_type


@dataclass(frozen=True, slots=True)
class NodeInputSchema:
    """Declared schema of one node input.

    link_type is the type a producer must have to feed this input. Widget
    inputs carry their widget kind as link type so primitive nodes can
    drive them.
    """

    name: str
    link_type: LinkTypeId
    widget: WidgetKind | None = None
    required: bool = True
    options: Mapping[str, Any] = field(default_factory=dict)
    choices: tuple[Any, ...] = ()

    @property
    def is_link(self) -> bool:
        return self.widget is None

    @classmethod
    def from_raw(cls, name: str, raw: Any, *, required: bool) -> NodeInputSchema:
        """Parse one object_info input entry.

        Raises:
            ValueError: If the entry is neither a type name nor a non-empty list.
        """
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list | tuple) or not raw:
            raise ValueError(f"Malformed schema for input '{name}': {raw!r}")

        head = raw[0]
        options = raw[1] if len(raw) > 1 and isinstance(raw[1], Mapping) else {}

        if isinstance(head, list | tuple):
            return cls(
                name=name,
                link_type=LinkTypeId(WidgetKind.COMBO),
                widget=WidgetKind.COMBO,
                required=required,
                options=MappingProxyType(dict(options)),
                choices=tuple(head),
            )
        if head == WidgetKind.COMBO:
            return cls(
                name=name,
                link_type=LinkTypeId(WidgetKind.COMBO),
                widget=WidgetKind.COMBO,
                required=required,
                options=MappingProxyType(dict(options)),
                choices=tuple(options.get("options", ())),
            )
        if head in _WIDGET_KINDS:
            return cls(
                name=name,
                link_type=LinkTypeId(head),
                widget=WidgetKind(head),
                required=required,
                options=MappingProxyType(dict(options)),
            )
        return cls(
            name=name,
            link_type=LinkTypeId(str(head)),
            required=required,
            options=MappingProxyType(dict(options)),
        )

    def default_value(self) -> Any:
        """Value a freshly added step should start with."""
        match self.widget:
            case WidgetKind.STRING:
                return self.options.get("default", "")
            case WidgetKind.COMBO:
                if "default" in self.options:
                    return self.options["default"]
                return self.choices[0] if self.choices else None
            case WidgetKind.INT | WidgetKind.FLOAT | WidgetKind.BOOLEAN:
                return self.options.get("default")
            case None:
                return None


@dataclass(frozen=True, slots=True)
class NodeTypeSchema:
    """Declared inputs and outputs of one node type.

    inputs holds required inputs first, then optional ones, each group in
    declared order.
    """

    name: NodeTypeId
    inputs: tuple[NodeInputSchema, ...] = ()
    output: tuple[LinkTypeId, ...] = ()
    output_name: tuple[str, ...] = ()
    display_name: str = ""
    category: str = ""

    @property
    def required_inputs(self) -> tuple[NodeInputSchema, ...]:
        return tuple(schema for schema in self.inputs if schema.required)

    @property
    def optional_inputs(self) -> tuple[NodeInputSchema, ...]:
        return tuple(schema for schema in self.inputs if not schema.required)

    def input(self, name: str) -> NodeInputSchema | None:
        for schema in self.inputs:
            if schema.name == name:
                return schema
        return None

    def output_label(self, slot: int) -> str:
        if slot < len(self.output_name):
            return self.output_name[slot]
        if slot < len(self.output):
            return self.output[slot]
        return f"output_{slot}"

    def with_split_conditioning(self) -> NodeTypeSchema:
        """Return a copy whose positive/negative inputs carry split types."""
        inputs = tuple(
            replace(schema, link_type=split_conditioning(schema.name, schema.link_type)) if schema.is_link else schema
            for schema in self.inputs
        )
        if inputs == self.inputs:
            return self
        return replace(self, inputs=inputs)

    @classmethod
    def from_object_info(cls, name: str, raw: Mapping[str, Any]) -> NodeTypeSchema:
        """Build a schema from one object_info entry."""
        declared = raw.get("input") or {}
        order = raw.get("input_order") or {}
        inputs: list[NodeInputSchema] = []
        for group, required in (("required", True), ("optional", False)):
            entries: Mapping[str, Any] = declared.get(group) or {}
            names = [n for n in order.get(group) or () if n in entries]
            names.extend(n for n in entries if n not in names)
            inputs.extend(NodeInputSchema.from_raw(n, entries[n], required=required) for n in names)

        output = tuple(LinkTypeId(str(t)) for t in raw.get("output") or ())
        return cls(
            name=NodeTypeId(raw.get("name") or name),
            inputs=tuple(inputs),
            output=output,
            output_name=tuple(str(n) for n in raw.get("output_name") or ()),
            display_name=str(raw.get("display_name") or name),
            category=str(raw.get("category") or ""),
        )


class NodeLibrary(Mapping[NodeTypeId, NodeTypeSchema]):
    """Immutable catalog keyed by node type id."""

    __slots__ = ("_schemas",)

    def __init__(self, schemas: Iterable[NodeTypeSchema] = ()) -> None:
        self._schemas: Mapping[NodeTypeId, NodeTypeSchema] = MappingProxyType({s.name: s for s in schemas})

    def __getitem__(self, key: NodeTypeId) -> NodeTypeSchema:
        return self._schemas[key]

    def __iter__(self) -> Iterator[NodeTypeId]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"NodeLibrary({len(self)} types)"

    def require(self, node_type: str) -> NodeTypeSchema:
        """Look up a schema.

        Raises:
            UnknownNodeType: If the catalog has no such type.
        """
        schema = self._schemas.get(NodeTypeId(node_type))
        if schema is None:
            raise UnknownNodeType(node_type)
        return schema

    def with_split_conditioning(self) -> NodeLibrary:
        """Return a library whose positive/negative inputs carry split types.

        Idempotent: applying it to an already split library is a no-op.
        """
        return NodeLibrary(schema.with_split_conditioning() for schema in self._schemas.values())

    @classmethod
    def from_object_info(cls, data: Mapping[str, Mapping[str, Any]]) -> NodeLibrary:
        """Build a library from the server's object_info document."""
        return cls(NodeTypeSchema.from_object_info(name, raw) for name, raw in data.items())
