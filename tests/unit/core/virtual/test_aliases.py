# tests/unit/core/virtual/test_aliases.py
"""Tests for set/get alias resolution."""

from __future__ import annotations

from typing import Any

from stepwise.contracts import parse_graph
from stepwise.core.virtual import AliasConverter
from tests.fixtures.factories import make_link, make_node


def _aliased_model(get_name: str = "model") -> dict[str, Any]:
    """Checkpoint -> SetNode("model"); GetNode -> KSampler.model."""
    return {
        "nodes": [
            make_node(1, "CheckpointLoaderSimple", outputs=[("MODEL", 0, [1]), ("CLIP", 1, []), ("VAE", 2, [])]),
            make_node(2, "SetNode", inputs=[("MODEL", "MODEL", 1)], outputs=[("*", 0, [])], widgets=["model"]),
            make_node(3, "GetNode", outputs=[("MODEL", 0, [2])], widgets=[get_name]),
            make_node(4, "KSampler", inputs=[("model", "MODEL", 2)], outputs=[("LATENT", 0, [])]),
        ],
        "links": [make_link(1, 1, 0, 2, 0, "MODEL"), make_link(2, 3, 0, 4, 0, "MODEL")],
    }


class TestAliasConverter:
    def test_detects_set_and_get_nodes(self) -> None:
        converter = AliasConverter()

        assert converter.detect(parse_graph(_aliased_model()))
        assert not converter.detect(parse_graph({"nodes": [make_node(1, "X")], "links": []}))

    def test_get_rewired_to_real_producer(self) -> None:
        result = AliasConverter().convert(parse_graph(_aliased_model()))

        assert result.warnings == ()
        assert set(result.removed_node_ids) == {2, 3}
        assert [node.id for node in result.graph.nodes] == [1, 4]
        # The consumer's link keeps its id
        assert [link.model_dump() for link in result.graph.links] == [[2, 1, 0, 4, 0, "MODEL"]]
        checkpoint = result.graph.nodes_by_id()[1]
        assert checkpoint.outputs[0].links == [2]

    def test_unknown_variable_warns_and_leaves_input_open(self) -> None:
        result = AliasConverter().convert(parse_graph(_aliased_model(get_name="vae")))

        assert len(result.warnings) == 1
        assert "'vae'" in result.warnings[0]
        assert result.graph.links == []
        sampler = result.graph.nodes_by_id()[4]
        assert sampler.inputs[0].link is None

    def test_duplicate_set_warns_and_last_wins(self) -> None:
        document = _aliased_model()
        document["nodes"].append(
            make_node(5, "SetNode", inputs=[("MODEL", "MODEL", 3)], outputs=[("*", 0, [])], widgets=["model"])
        )
        document["nodes"][0]["outputs"][0]["links"] = [1, 3]
        document["links"].append(make_link(3, 1, 0, 5, 0, "MODEL"))

        result = AliasConverter().convert(parse_graph(document))

        assert any("set by nodes 2 and 5" in warning for warning in result.warnings)
        assert [link.model_dump() for link in result.graph.links] == [[2, 1, 0, 4, 0, "MODEL"]]

    def test_chained_aliases_followed(self) -> None:
        # Checkpoint -> Set(a); Get(a) -> Set(b); Get(b) -> KSampler
        document = {
            "nodes": [
                make_node(1, "CheckpointLoaderSimple", outputs=[("MODEL", 0, [1])]),
                make_node(2, "SetNode", inputs=[("MODEL", "MODEL", 1)], widgets=["a"]),
                make_node(3, "GetNode", outputs=[("MODEL", 0, [2])], widgets=["a"]),
                make_node(4, "easy setNode", inputs=[("MODEL", "MODEL", 2)], widgets=["b"]),
                make_node(5, "easy getNode", outputs=[("MODEL", 0, [3])], widgets=["b"]),
                make_node(6, "KSampler", inputs=[("model", "MODEL", 3)]),
            ],
            "links": [
                make_link(1, 1, 0, 2, 0, "MODEL"),
                make_link(2, 3, 0, 4, 0, "MODEL"),
                make_link(3, 5, 0, 6, 0, "MODEL"),
            ],
        }

        result = AliasConverter().convert(parse_graph(document))

        assert result.warnings == ()
        assert [link.model_dump() for link in result.graph.links] == [[3, 1, 0, 6, 0, "MODEL"]]

    def test_alias_loop_is_unresolved(self) -> None:
        # Two variables that only feed each other
        document = {
            "nodes": [
                make_node(1, "SetNode", inputs=[("x", "MODEL", 2)], widgets=["a"]),
                make_node(2, "GetNode", outputs=[("MODEL", 0, [1])], widgets=["b"]),
                make_node(3, "SetNode", inputs=[("x", "MODEL", 1)], widgets=["b"]),
                make_node(4, "GetNode", outputs=[("MODEL", 0, [2, 3])], widgets=["a"]),
                make_node(5, "KSampler", inputs=[("model", "MODEL", 3)]),
            ],
            "links": [
                make_link(1, 2, 0, 3, 0, "MODEL"),
                make_link(2, 4, 0, 1, 0, "MODEL"),
                make_link(3, 4, 0, 5, 0, "MODEL"),
            ],
        }

        result = AliasConverter().convert(parse_graph(document))

        assert [node.id for node in result.graph.nodes] == [5]
        assert result.graph.links == []
        assert result.warnings

    def test_unnamed_set_node_warns(self) -> None:
        document = _aliased_model()
        document["nodes"][1]["widgets_values"] = [""]

        result = AliasConverter().convert(parse_graph(document))

        assert any("no variable name" in warning for warning in result.warnings)
