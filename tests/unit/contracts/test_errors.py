# tests/unit/contracts/test_errors.py
"""Tests for conversion error messages."""

from stepwise.contracts import (
    CycleDetected,
    DuplicateInputType,
    InvalidWorkflow,
    MissingInput,
    MissingSlotIndex,
    UnknownNodeType,
    WorkflowError,
)


def test_all_errors_share_base() -> None:
    for error in (
        InvalidWorkflow("x"),
        CycleDetected(),
        UnknownNodeType("X"),
        DuplicateInputType("X", "T"),
        MissingInput("X", "T"),
    ):
        assert isinstance(error, WorkflowError)
        assert isinstance(error, ValueError)


def test_messages_name_node_and_link_types() -> None:
    assert str(UnknownNodeType("Upscaler")) == "Unknown node type Upscaler"
    assert str(DuplicateInputType("Mixer", "LATENT")) == "Unsupported duplicate input type LATENT was found at Mixer"
    assert str(MissingInput("VAEDecode", "VAE")) == "Missing input of type VAE for VAEDecode"


def test_cycle_message_closes_loop() -> None:
    error = CycleDetected([(1, 2), (2, 3), (3, 1)])

    assert str(error) == "Workflow contains a cycle: 1 -> 2 -> 3 -> 1"
    assert error.cycle == ((1, 2), (2, 3), (3, 1))
    assert str(CycleDetected()) == "Workflow contains a cycle"


def test_missing_slot_index_is_invalid_workflow() -> None:
    error = MissingSlotIndex(4, "LoadImage", "MASK")

    assert isinstance(error, InvalidWorkflow)
    assert "output 'MASK' of LoadImage (node 4) has no slot_index" in str(error)
