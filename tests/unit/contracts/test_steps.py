# tests/unit/contracts/test_steps.py
"""Tests for the pipeline step model."""

from __future__ import annotations

import pytest

from stepwise.contracts import (
    AggregateStep,
    InvalidPipeline,
    NodeLibrary,
    NodeStep,
    PrimitiveControl,
    PrimitiveStep,
    ShiftStep,
    default_node_step,
    dump_pipeline,
    parse_pipeline,
)


class TestParsePipeline:
    def test_parses_every_variant(self) -> None:
        steps = parse_pipeline(
            [
                {"type": "Shift", "outputType": "MODEL", "count": 1},
                {"type": "Primitive", "outputType": "INT", "value": 4, "control": "increment"},
                {"type": "Node", "nodeType": "KSampler", "form": {"seed": 1}},
                {
                    "type": "Aggregate",
                    "name": "sample",
                    "form": {"s": 1},
                    "nodes": [{"type": "KSampler", "formMapping": {"seed": "s"}}],
                },
            ]
        )

        assert isinstance(steps[0], ShiftStep)
        assert steps[0].count == 1
        assert isinstance(steps[1], PrimitiveStep)
        assert steps[1].control is PrimitiveControl.INCREMENT
        assert isinstance(steps[2], NodeStep)
        assert steps[2].output_types is None
        assert isinstance(steps[3], AggregateStep)
        assert steps[3].embedded_nodes[0].field_mapping == {"seed": "s"}

    def test_rejects_non_list(self) -> None:
        with pytest.raises(InvalidPipeline, match="expected a list"):
            parse_pipeline({"type": "Shift"})

    def test_rejects_unknown_variant(self) -> None:
        with pytest.raises(InvalidPipeline):
            parse_pipeline([{"type": "Teleport"}])

    def test_rejects_negative_shift(self) -> None:
        with pytest.raises(InvalidPipeline, match="count"):
            parse_pipeline([{"type": "Shift", "outputType": "MODEL", "count": -1}])

    def test_snake_case_names_accepted(self) -> None:
        step = ShiftStep(output_type="LATENT", count=2)

        assert step.output_type == "LATENT"


class TestDumpPipeline:
    def test_camel_case_keys(self) -> None:
        dumped = dump_pipeline(
            [
                ShiftStep(output_type="MODEL", count=1),
                NodeStep(node_type="VAEDecode", output_types=["IMAGE", None]),
            ]
        )

        assert dumped == [
            {"type": "Shift", "outputType": "MODEL", "count": 1},
            {"type": "Node", "nodeType": "VAEDecode", "form": {}, "outputTypes": ["IMAGE", None], "linkedWidgets": None},
        ]

    def test_parse_of_dump_is_identity(self) -> None:
        steps = [
            PrimitiveStep(output_type="FLOAT", value=0.5, control=PrimitiveControl.RANDOMIZE),
            NodeStep(node_type="KSampler", form={"seed": 3}),
        ]

        assert parse_pipeline(dump_pipeline(steps)) == steps


class TestDefaultNodeStep:
    def test_sampler_defaults(self, library: NodeLibrary) -> None:
        step = default_node_step(library.require("KSampler"))

        assert step.node_type == "KSampler"
        assert step.form == {
            "seed": 0,
            "control_after_generate": "fixed",
            "steps": 20,
            "cfg": 8.0,
            "sampler_name": "euler",
            "scheduler": "normal",
            "denoise": 1.0,
        }

    def test_no_widgets(self, library: NodeLibrary) -> None:
        assert default_node_step(library.require("VAEDecode")).form == {}

    def test_optional_widgets_included(self, library: NodeLibrary) -> None:
        assert default_node_step(library.require("ImageScale")).form == {"width": 512, "crop": 0}
