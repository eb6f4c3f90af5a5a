# src/stepwise/core/virtual/broadcast.py
"""Broadcast ("everywhere") nodes.

A broadcast node takes one real incoming link and implicitly fans it out to
every other node with a matching open input. Resolution turns each implicit
connection into a real link and removes the broadcast node.

Matching rules are strategy objects. Each rule names the node types it
handles, optionally recognizes nodes structurally, and turns a broadcast
node into channels: a source link plus a predicate over candidate inputs.
The walk that applies channels to the graph is shared.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from stepwise.contracts.graph import Graph, GraphNode, Link, NodeInput
from stepwise.contracts.types import NodeID
from stepwise.core.virtual.models import GraphEditor, ResolutionResult

slog = structlog.get_logger(__name__)

SIMPLE_STRING_TYPE = "SimpleString"
BROADCAST_TYPE_PREFIX = "Anything Everywhere"
MATCH_ALL = ".*"

POSITIVE_PROMPT_PATTERNS = ("prompt", "positive", "pos")
NEGATIVE_PROMPT_PATTERNS = ("negative", "neg")


@dataclass(frozen=True, slots=True)
class BroadcastChannel:
    """One fan-out from a broadcast node.

    accepts decides, per candidate node and input, whether the input may be
    wired to source. Only open inputs are ever offered.
    """

    label: str
    source: Link
    accepts: Callable[[GraphNode, NodeInput], bool]


class BroadcastRule(Protocol):
    """How one broadcast variant chooses its targets."""

    name: str
    type_names: frozenset[str]

    def matches_structure(self, node: GraphNode) -> bool:
        """Recognize the variant when the type name is unfamiliar."""
        ...

    def channels(self, node: GraphNode, context: BroadcastContext) -> list[BroadcastChannel]:
        """Return the fan-outs this node performs. Empty when it has no source."""
        ...


class BroadcastContext:
    """Read access to the graph being rewritten, for rules."""

    def __init__(self, editor: GraphEditor) -> None:
        self._editor = editor
        self._groups = [_GroupBox.from_wire(raw) for raw in editor.graph.groups]

    def source_link(self, node_input: NodeInput) -> Link | None:
        if node_input.link is None:
            return None
        return self._editor.links.get(node_input.link)

    def group_titles(self, node: GraphNode) -> list[str]:
        position = _position(node)
        if position is None:
            return []
        return [group.title for group in self._groups if group.contains(*position)]

    def compile_pattern(self, node: GraphNode, pattern: Any) -> re.Pattern[str] | None:
        """Compile a user-supplied pattern, warning when it is invalid."""
        text = pattern if isinstance(pattern, str) and pattern else MATCH_ALL
        try:
            return re.compile(text)
        except re.error as e:
            self._editor.warn(
                "virtual_broadcast_invalid_pattern",
                f"Broadcast node {node.id} has an invalid pattern {text!r}: {e}",
                node_id=node.id,
                pattern=text,
            )
            return None


@dataclass(frozen=True, slots=True)
class _GroupBox:
    title: str
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> _GroupBox:
        bounding = list(raw.get("bounding") or ())
        if len(bounding) < 4:
            bounding = [0, 0, 0, 0]
        x, y, width, height = (float(v) for v in bounding[:4])
        return cls(title=str(raw.get("title") or ""), x=x, y=y, width=width, height=height)

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


def _position(node: GraphNode) -> tuple[float, float] | None:
    pos = (node.model_extra or {}).get("pos")
    if isinstance(pos, list | tuple) and len(pos) >= 2:
        return float(pos[0]), float(pos[1])
    if isinstance(pos, dict) and "0" in pos and "1" in pos:
        return float(pos["0"]), float(pos["1"])
    return None


def _first_linked(node: GraphNode, context: BroadcastContext) -> Link | None:
    for node_input in node.inputs:
        link = context.source_link(node_input)
        if link is not None:
            return link
    return None


def _named_source(node: GraphNode, name: str, context: BroadcastContext) -> Link | None:
    node_input = node.input_named(name)
    return context.source_link(node_input) if node_input is not None else None


def _same_type(link: Link) -> Callable[[GraphNode, NodeInput], bool]:
    return lambda _node, node_input: node_input.type == link.type


def _name_contains(patterns: Sequence[str]) -> Callable[[GraphNode, NodeInput], bool]:
    return lambda _node, node_input: any(p in node_input.name.lower() for p in patterns)


class SeedRule:
    """Seed Everywhere: the linked `seed` input feeds every open seed-like input."""

    name = "seed"
    type_names = frozenset({"SeedEverywhere", "Seed Everywhere"})

    def matches_structure(self, node: GraphNode) -> bool:
        return False

    def channels(self, node: GraphNode, context: BroadcastContext) -> list[BroadcastChannel]:
        source = _named_source(node, "seed", context)
        if source is None:
            return []
        return [BroadcastChannel("seed", source, _name_contains(("seed",)))]


class PromptPairRule:
    """Prompts Everywhere: `+ve` and `-ve` feed inputs by positive/negative name."""

    name = "prompts"
    type_names = frozenset({"AnythingEverywherePrompts", "Prompts Everywhere"})

    def matches_structure(self, node: GraphNode) -> bool:
        return not node.outputs and any(i.name in ("+ve", "-ve") for i in node.inputs)

    def channels(self, node: GraphNode, context: BroadcastContext) -> list[BroadcastChannel]:
        channels = []
        positive = _named_source(node, "+ve", context)
        if positive is not None:
            channels.append(BroadcastChannel("positive", positive, _name_contains(POSITIVE_PROMPT_PATTERNS)))
        negative = _named_source(node, "-ve", context)
        if negative is not None:
            channels.append(BroadcastChannel("negative", negative, _name_contains(NEGATIVE_PROMPT_PATTERNS)))
        return channels


class TripletRule:
    """Anything Everywhere3: up to three independent type-matched fan-outs."""

    name = "triplet"
    type_names = frozenset({"AnythingEverywhereTriplet", "Anything Everywhere3"})

    def matches_structure(self, node: GraphNode) -> bool:
        return False

    def channels(self, node: GraphNode, context: BroadcastContext) -> list[BroadcastChannel]:
        channels = []
        for index, node_input in enumerate(node.inputs[:3]):
            link = context.source_link(node_input)
            if link is not None:
                channels.append(BroadcastChannel(f"slot {index}", link, _same_type(link)))
        return channels


class QualifiedRule:
    """Anything Everywhere?: type match restricted by title, input and group patterns.

    The patterns are the node's first three widget values. An empty value
    matches everything.
    """

    name = "qualified"
    type_names = frozenset({"AnythingSomewhere", "Anything Everywhere?"})

    def matches_structure(self, node: GraphNode) -> bool:
        values = node.widgets_values
        return not node.outputs and "Everywhere" in node.type and len(values) >= 3

    def channels(self, node: GraphNode, context: BroadcastContext) -> list[BroadcastChannel]:
        source = _first_linked(node, context)
        if source is None:
            return []
        title_rx = context.compile_pattern(node, node.widget(0))
        input_rx = context.compile_pattern(node, node.widget(1))
        group_rx = context.compile_pattern(node, node.widget(2))
        if title_rx is None or input_rx is None or group_rx is None:
            return []

        def accepts(target: GraphNode, node_input: NodeInput) -> bool:
            if node_input.type != source.type or not input_rx.search(node_input.name):
                return False
            if not title_rx.search(target.display_title):
                return False
            return any(group_rx.search(title) for title in context.group_titles(target) or [""])

        return [BroadcastChannel("qualified", source, accepts)]


class AnythingRule:
    """Anything Everywhere: the first linked input feeds every open input of its type."""

    name = "anything"
    type_names = frozenset({"AnythingEverywhere", "Anything Everywhere"})

    def matches_structure(self, node: GraphNode) -> bool:
        if node.outputs:
            return False
        if (node.model_extra or {}).get("IS_UE") is True:
            return True
        return node.type.startswith(BROADCAST_TYPE_PREFIX) or any(i.name == "anything" for i in node.inputs)

    def channels(self, node: GraphNode, context: BroadcastContext) -> list[BroadcastChannel]:
        source = _first_linked(node, context)
        if source is None:
            return []
        return [BroadcastChannel("anything", source, _same_type(source))]


# Structural matching is tried in this order, so narrower rules come first
BROADCAST_RULES: tuple[BroadcastRule, ...] = (
    SeedRule(),
    PromptPairRule(),
    TripletRule(),
    QualifiedRule(),
    AnythingRule(),
)


def rule_for(node: GraphNode, rules: Sequence[BroadcastRule] = BROADCAST_RULES) -> BroadcastRule | None:
    """Return the rule handling a node, or None if it is not a broadcast node.

    Exact type names win; structural recognition is the fallback.
    """
    for rule in rules:
        if node.type in rule.type_names:
            return rule
    for rule in rules:
        if rule.matches_structure(node):
            return rule
    return None


class BroadcastConverter:
    """Replaces broadcast nodes with the direct links they imply."""

    name = "broadcast"

    def __init__(self, rules: Sequence[BroadcastRule] = BROADCAST_RULES) -> None:
        self._rules = tuple(rules)

    def detect(self, graph: Graph) -> bool:
        return any(rule_for(node, self._rules) is not None for node in graph.nodes)

    def convert(self, graph: Graph) -> ResolutionResult:
        editor = GraphEditor(graph, self.name)
        context = BroadcastContext(editor)
        broadcasts: list[tuple[GraphNode, BroadcastRule]] = []
        for node in graph.nodes:
            rule = rule_for(node, self._rules)
            if rule is not None:
                broadcasts.append((node, rule))
        broadcast_ids = {node.id for node, _ in broadcasts}
        candidates = [node for node in graph.nodes if node.id not in broadcast_ids]

        for node, rule in broadcasts:
            channels = rule.channels(node, context)
            if not channels:
                editor.warn(
                    "virtual_broadcast_unconnected",
                    f"Broadcast node {node.id} ({node.type}) has no connected source",
                    node_id=node.id,
                    rule=rule.name,
                )
            connected = sum(self._fan_out(editor, channel, node.id, candidates) for channel in channels)
            if channels and connected == 0:
                editor.warn(
                    "virtual_broadcast_no_targets",
                    f"Broadcast node {node.id} ({node.type}) matched no open inputs",
                    node_id=node.id,
                    rule=rule.name,
                )
            editor.mark_removed(node.id)

        self._drop_helpers(editor, graph, broadcast_ids)
        return editor.finish()

    @staticmethod
    def _fan_out(
        editor: GraphEditor,
        channel: BroadcastChannel,
        broadcast_id: NodeID,
        candidates: Sequence[GraphNode],
    ) -> int:
        connected = 0
        for target in candidates:
            for index, node_input in enumerate(editor.inputs[target.id]):
                if node_input.link is not None or not channel.accepts(target, node_input):
                    continue
                link = editor.connect(
                    channel.source.origin_id,
                    channel.source.origin_slot,
                    target.id,
                    index,
                    node_input.type,
                )
                connected += 1
                slog.debug(
                    "virtual_broadcast_connected",
                    broadcast_node_id=broadcast_id,
                    channel=channel.label,
                    link_id=link.id,
                    target_id=target.id,
                    input_name=node_input.name,
                )
                # One link per target node and channel
                break
        return connected

    @staticmethod
    def _drop_helpers(editor: GraphEditor, graph: Graph, broadcast_ids: set[NodeID]) -> None:
        """Remove string helpers that only fed broadcast nodes."""
        removed = set(editor.removed)
        for node in graph.nodes:
            if node.type != SIMPLE_STRING_TYPE:
                continue
            fed_broadcast = any(
                link.origin_id == node.id and link.target_id in broadcast_ids for link in graph.links
            )
            if not fed_broadcast:
                continue
            survivors = [
                link for link in editor.links.values() if link.origin_id == node.id and link.target_id not in removed
            ]
            if not survivors:
                editor.mark_removed(node.id)
