"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different ids.
"""

from typing import NewType

# Graph identifiers - assigned by the editor that saved the graph, or
# sequentially by the generator
NodeID = NewType("NodeID", int)
"""Node identifier inside one graph (e.g. 7)"""

LinkID = NewType("LinkID", int)
"""Link identifier inside one graph (e.g. 12)"""

SlotIndex = NewType("SlotIndex", int)
"""Zero-based position of an input or output slot on a node"""

# Catalog names
LinkTypeId = NewType("LinkTypeId", str)
"""Data kind carried by a slot (e.g. 'MODEL', 'LATENT', 'CONDITIONING')"""

NodeTypeId = NewType("NodeTypeId", str)
"""Catalog entry name (e.g. 'KSampler', 'CheckpointLoaderSimple')"""

Producer = tuple[NodeID, SlotIndex]
"""A (node, output slot) pair held on a per-type producer stack."""
