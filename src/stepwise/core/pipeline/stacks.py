# src/stepwise/core/pipeline/stacks.py
"""Per-type producer stacks shared by the compiler and the generator.

Each link type has its own stack of (node id, output slot) pairs, most
recently produced on top. A step may only consume the current top of a
stack; reaching an older producer takes an explicit Shift, which moves the
top `count` entries to the bottom.

A TypeStacks instance lives for one compile or generate call.
"""

from __future__ import annotations

from stepwise.contracts.types import LinkTypeId, Producer


class TypeStacks:
    """Producer stacks keyed by link type."""

    __slots__ = ("_stacks",)

    def __init__(self) -> None:
        self._stacks: dict[LinkTypeId, list[Producer]] = {}

    def push(self, link_type: LinkTypeId, producer: Producer) -> None:
        self._stacks.setdefault(link_type, []).append(producer)

    def top(self, link_type: LinkTypeId) -> Producer | None:
        stack = self._stacks.get(link_type)
        return stack[-1] if stack else None

    def depth(self, link_type: LinkTypeId) -> int:
        return len(self._stacks.get(link_type, ()))

    def distance_from_top(self, link_type: LinkTypeId, producer: Producer) -> int | None:
        """Return how many entries sit above producer, or None if it is absent."""
        stack = self._stacks.get(link_type)
        if not stack or producer not in stack:
            return None
        return len(stack) - 1 - stack.index(producer)

    def rotate(self, link_type: LinkTypeId, count: int) -> None:
        """Move the top `count` entries to the bottom, preserving their order.

        Raises:
            ValueError: If the stack is not deeper than count.
        """
        stack = self._stacks.get(link_type, [])
        if count < 0 or count >= len(stack):
            raise ValueError(f"cannot shift {link_type} stack of depth {len(stack)} by {count}")
        if count:
            stack[:] = stack[-count:] + stack[:-count]
