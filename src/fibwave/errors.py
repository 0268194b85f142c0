"""
Error taxonomy for the engine.

Recoverable situations are reported as Condition values on each bar's
result and never raised to the caller. The only fatal class is a bar
arriving out of index order.
"""

from enum import Enum


class Condition(Enum):
    """Locally recovered conditions, reported per bar."""
    INSUFFICIENT_HISTORY = "insufficient_history"
    DEGENERATE_RANGE = "degenerate_range"
    OBJECT_LIMIT_EXCEEDED = "object_limit_exceeded"
    INVALID_PIVOT_SEQUENCE = "invalid_pivot_sequence"


class EngineError(Exception):
    """Base class for engine exceptions."""


class InvalidPivotSequenceError(EngineError, ValueError):
    """Anchor pivots are not one HIGH and one LOW."""


class BarOrderError(EngineError):
    """
    The feed delivered a bar out of index order.

    Raised before any state is touched, so the engine is left exactly
    as it was after the previous bar.
    """

    def __init__(self, bar_index: int, last_index: int):
        self.bar_index = bar_index
        self.last_index = last_index
        super().__init__(
            f"Bar {bar_index} arrived out of order (last confirmed bar: {last_index})"
        )


class ObjectLimitExceededError(EngineError):
    """A handle was requested beyond its artifact ceiling."""
