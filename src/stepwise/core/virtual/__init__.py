# src/stepwise/core/virtual/__init__.py
"""Virtual link resolution: set/get aliases and broadcast nodes become direct links."""

from stepwise.core.virtual.aliases import GET_NODE_TYPES, SET_NODE_TYPES, AliasConverter
from stepwise.core.virtual.broadcast import (
    BROADCAST_RULES,
    BroadcastChannel,
    BroadcastConverter,
    BroadcastRule,
    rule_for,
)
from stepwise.core.virtual.models import ResolutionResult, VirtualConverter, reconcile_links
from stepwise.core.virtual.registry import VIRTUAL_CONVERTERS, resolve_virtual_links

__all__ = [
    "BROADCAST_RULES",
    "GET_NODE_TYPES",
    "SET_NODE_TYPES",
    "VIRTUAL_CONVERTERS",
    "AliasConverter",
    "BroadcastChannel",
    "BroadcastConverter",
    "BroadcastRule",
    "ResolutionResult",
    "VirtualConverter",
    "reconcile_links",
    "resolve_virtual_links",
    "rule_for",
]
