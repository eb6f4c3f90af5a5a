# src/stepwise/core/virtual/registry.py
"""Ordered registry of virtual link converters and the entry point running them."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from stepwise.contracts.graph import Graph, parse_graph
from stepwise.core.config import VirtualLinkSettings
from stepwise.core.virtual.aliases import AliasConverter
from stepwise.core.virtual.broadcast import BroadcastConverter
from stepwise.core.virtual.models import ResolutionResult, VirtualConverter

slog = structlog.get_logger(__name__)

# Aliases first: broadcast targets are only known once set/get pairs are gone
VIRTUAL_CONVERTERS: tuple[VirtualConverter, ...] = (
    AliasConverter(),
    BroadcastConverter(),
)


def _enabled(converter: VirtualConverter, settings: VirtualLinkSettings) -> bool:
    match converter.name:
        case "alias":
            return settings.resolve_aliases
        case "broadcast":
            return settings.resolve_broadcasts
        case _:
            return True


def resolve_virtual_links(
    graph: Graph | Mapping[str, Any],
    settings: VirtualLinkSettings | None = None,
    converters: Sequence[VirtualConverter] = VIRTUAL_CONVERTERS,
) -> ResolutionResult:
    """Rewrite every indirection node in a graph into direct links.

    Running this on its own output is a no-op: a graph without indirection
    nodes is returned as the same object with no warnings.

    Raises:
        InvalidWorkflow: If a mapping is given that is not a valid graph.
    """
    settings = settings or VirtualLinkSettings()
    result = ResolutionResult(graph=parse_graph(graph))
    for converter in converters:
        if not _enabled(converter, settings):
            slog.debug("virtual_pass_disabled", converter=converter.name)
            continue
        if not converter.detect(result.graph):
            continue
        result = result.merge(converter.convert(result.graph))

    if result.changed:
        slog.info(
            "virtual_links_resolved",
            removed_nodes=len(result.removed_node_ids),
            added_links=result.added_links,
            warnings=len(result.warnings),
        )
    return result
