# src/stepwise/core/pipeline/aggregates.py
"""Aggregate expansion: each aggregate step becomes its embedded node steps."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, assert_never

import structlog

from stepwise.contracts.steps import AggregateStep, NodeStep, PrimitiveStep, ShiftStep, WorkflowStep

slog = structlog.get_logger(__name__)


def _expand(aggregate: AggregateStep) -> list[NodeStep]:
    expanded = []
    for embedded in aggregate.embedded_nodes:
        form: dict[str, Any] = {}
        for input_name, field_name in embedded.field_mapping.items():
            if field_name not in aggregate.form:
                slog.debug(
                    "aggregate_field_missing",
                    aggregate=aggregate.name,
                    node_type=embedded.node_type,
                    field=field_name,
                )
                continue
            form[input_name] = aggregate.form[field_name]
        expanded.append(NodeStep(node_type=embedded.node_type, form=form, output_types=embedded.output_types))
    return expanded


def expand_aggregates(steps: Iterable[WorkflowStep]) -> list[WorkflowStep]:
    """Replace aggregates in place by their embedded node steps, in order.

    Other steps pass through unchanged, so the result never contains an
    AggregateStep.
    """
    output: list[WorkflowStep] = []
    for step in steps:
        match step:
            case AggregateStep():
                output.extend(_expand(step))
            case ShiftStep() | PrimitiveStep() | NodeStep():
                output.append(step)
            case _:
                assert_never(step)
    return output
