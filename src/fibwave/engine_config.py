"""
Engine Configuration

Centralized configuration for pivot detection, level derivation,
scenario activation and artifact ceilings.
"""

from dataclasses import dataclass, asdict, field
from decimal import Decimal
from typing import Any, Tuple

from .constants import (
    DEFAULT_WAVE_LABEL_CAP,
    EXTENSION_RATIOS,
    RETRACEMENT_RATIOS,
)
from .types import to_decimal


@dataclass(frozen=True)
class EngineConfig:
    """
    All configurable parameters for the engine.

    Attributes:
        pivot_length: Bars required on each side of a candidate extremum
            before it is confirmed as a pivot (L). Confirmation is always
            L bars delayed.
        min_anchor_range: A pivot pair must span strictly more than this
            (absolute price units) to activate a scenario.
        retracement_ratios: Active subset of RETRACEMENT_RATIOS.
        extension_ratios: Active subset of EXTENSION_RATIOS.
        max_lines: Ceiling on concurrent LINE handles (anchors + levels).
        max_labels: Ceiling on concurrent LABEL handles (wave labels).
        max_boxes: Ceiling on concurrent BOX handles (zones).
        wave_label_cap: Size of the wave label FIFO.
        pivot_history: Capacity of the pivot ring buffer.
        extend_artifacts: Stretch lines/boxes to the latest confirmed bar
            via UPDATE events.

    Example:
        >>> config = EngineConfig.default()
        >>> config.pivot_length
        5
        >>> config.with_overrides(pivot_length=3).pivot_length
        3
    """
    pivot_length: int = 5
    min_anchor_range: Decimal = Decimal("0.01")
    retracement_ratios: Tuple[Decimal, ...] = field(default=RETRACEMENT_RATIOS)
    extension_ratios: Tuple[Decimal, ...] = field(default=EXTENSION_RATIOS)
    max_lines: int = 32
    max_labels: int = 20
    max_boxes: int = 4
    wave_label_cap: int = DEFAULT_WAVE_LABEL_CAP
    pivot_history: int = 8
    extend_artifacts: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.pivot_length, int) or self.pivot_length < 1:
            raise ValueError(
                f"pivot_length must be a positive integer, got {self.pivot_length!r}"
            )

        min_range = to_decimal(self.min_anchor_range)
        if not min_range.is_finite() or min_range <= 0:
            raise ValueError(
                f"min_anchor_range must be > 0, got {self.min_anchor_range!r}"
            )
        object.__setattr__(self, "min_anchor_range", min_range)

        retracements = tuple(sorted(to_decimal(r) for r in self.retracement_ratios))
        unknown = [r for r in retracements if r not in RETRACEMENT_RATIOS]
        if unknown:
            raise ValueError(f"Unsupported retracement ratios: {unknown}")
        object.__setattr__(self, "retracement_ratios", retracements)

        extensions = tuple(sorted(to_decimal(r) for r in self.extension_ratios))
        unknown = [r for r in extensions if r not in EXTENSION_RATIOS]
        if unknown:
            raise ValueError(f"Unsupported extension ratios: {unknown}")
        object.__setattr__(self, "extension_ratios", extensions)

        for name in ("max_lines", "max_labels", "max_boxes"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

        if not isinstance(self.wave_label_cap, int) or self.wave_label_cap < 1:
            raise ValueError(
                f"wave_label_cap must be a positive integer, got {self.wave_label_cap!r}"
            )
        if not isinstance(self.pivot_history, int) or self.pivot_history < 2:
            raise ValueError(
                f"pivot_history must be an integer >= 2, got {self.pivot_history!r}"
            )

    @property
    def window_size(self) -> int:
        """Bars needed to confirm one pivot (2L + 1)."""
        return 2 * self.pivot_length + 1

    @classmethod
    def default(cls) -> "EngineConfig":
        """Create a config with default values."""
        return cls()

    def with_overrides(self, **kwargs: Any) -> "EngineConfig":
        """
        Create a new config with modified parameters.

        Since EngineConfig is frozen, this creates a new instance.
        """
        values = asdict(self)
        values.update(kwargs)
        return EngineConfig(**values)

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        values = asdict(self)
        values["min_anchor_range"] = str(self.min_anchor_range)
        values["retracement_ratios"] = [str(r) for r in self.retracement_ratios]
        values["extension_ratios"] = [str(r) for r in self.extension_ratios]
        return values

    @classmethod
    def from_dict(cls, data: dict) -> "EngineConfig":
        values = dict(data)
        if "min_anchor_range" in values:
            values["min_anchor_range"] = Decimal(values["min_anchor_range"])
        for key in ("retracement_ratios", "extension_ratios"):
            if key in values:
                values[key] = tuple(Decimal(r) for r in values[key])
        return cls(**values)
