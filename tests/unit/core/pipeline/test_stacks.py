# tests/unit/core/pipeline/test_stacks.py
"""Tests for per-type producer stacks."""

from __future__ import annotations

import pytest

from stepwise.contracts import LinkTypeId, NodeID, SlotIndex
from stepwise.core.pipeline import TypeStacks

T = LinkTypeId("T1")


def _producer(node_id: int) -> tuple[NodeID, SlotIndex]:
    return (NodeID(node_id), SlotIndex(0))


@pytest.fixture
def stacks() -> TypeStacks:
    stacks = TypeStacks()
    for node_id in (1, 2, 3):
        stacks.push(T, _producer(node_id))
    return stacks


def test_top_is_last_pushed(stacks: TypeStacks) -> None:
    assert stacks.top(T) == _producer(3)
    assert stacks.top(LinkTypeId("OTHER")) is None


def test_distance_from_top(stacks: TypeStacks) -> None:
    assert stacks.distance_from_top(T, _producer(3)) == 0
    assert stacks.distance_from_top(T, _producer(1)) == 2
    assert stacks.distance_from_top(T, _producer(9)) is None
    assert stacks.distance_from_top(LinkTypeId("OTHER"), _producer(1)) is None


def test_rotate_moves_top_entries_to_bottom(stacks: TypeStacks) -> None:
    stacks.rotate(T, 2)

    assert stacks.top(T) == _producer(1)
    assert stacks.distance_from_top(T, _producer(3)) == 1
    assert stacks.distance_from_top(T, _producer(2)) == 2


def test_rotate_by_zero_is_noop(stacks: TypeStacks) -> None:
    stacks.rotate(T, 0)

    assert stacks.top(T) == _producer(3)
    assert stacks.distance_from_top(T, _producer(1)) == 2


@pytest.mark.parametrize("count", [3, 4, -1])
def test_rotate_out_of_range(stacks: TypeStacks, count: int) -> None:
    with pytest.raises(ValueError, match="cannot shift"):
        stacks.rotate(T, count)


def test_rotate_missing_stack() -> None:
    with pytest.raises(ValueError):
        TypeStacks().rotate(T, 0)


def test_depth(stacks: TypeStacks) -> None:
    assert stacks.depth(T) == 3
    assert stacks.depth(LinkTypeId("OTHER")) == 0
