"""Closed vocabularies shared across the compiler and generator.

Values are the exact strings used in saved pipelines and graph files, so
they must never be renamed.
"""

from enum import StrEnum


class PrimitiveControl(StrEnum):
    """How the editor regenerates a primitive value between runs.

    Replay semantics only; the compiler carries the value through untouched.
    """

    FIXED = "fixed"
    INCREMENT = "increment"
    DECREMENT = "decrement"
    RANDOMIZE = "randomize"


class WidgetKind(StrEnum):
    """Literal input kinds a node type can declare.

    Anything else in the first position of an input schema is a link type.
    """

    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    COMBO = "COMBO"
