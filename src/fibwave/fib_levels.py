"""
Fibonacci Level Engine

Derives the retracement/extension level set from the current anchor pair.
A level set is always rebuilt from scratch for a new anchor pair; nothing
from a previous pair is carried over.

Frame conventions (Up = low formed first, then high):
- ratio 0 is the most recent pivot (the high for Up, the low for Down)
- ratio 1 is the older pivot
- retracements (0 < r < 1) sit between the anchors
- extensions (r > 1) project beyond the 0% anchor by (r - 1) x range
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from .constants import (
    EXTENSION_RATIOS,
    GOLDEN_POCKET,
    GOLDEN_ZONE,
    RETRACEMENT_RATIOS,
)
from .errors import Condition, InvalidPivotSequenceError
from .types import Direction, Pivot, PivotKind, to_decimal

logger = logging.getLogger(__name__)


class LevelKind(Enum):
    RETRACEMENT = "retracement"
    EXTENSION = "extension"


class ZoneTag(Enum):
    GOLDEN_ZONE = "golden_zone"
    GOLDEN_POCKET = "golden_pocket"


ZONE_BANDS = {
    ZoneTag.GOLDEN_POCKET: GOLDEN_POCKET,
    ZoneTag.GOLDEN_ZONE: GOLDEN_ZONE,
}


@dataclass(frozen=True)
class FibLevel:
    ratio: Decimal
    price: Decimal
    kind: LevelKind
    zone: Optional[ZoneTag] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ratio": str(self.ratio),
            "price": str(self.price),
            "kind": self.kind.value,
            "zone": self.zone.value if self.zone else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FibLevel":
        return cls(
            ratio=Decimal(data["ratio"]),
            price=Decimal(data["price"]),
            kind=LevelKind(data["kind"]),
            zone=ZoneTag(data["zone"]) if data.get("zone") else None,
        )


@dataclass(frozen=True)
class FibZone:
    """A named retracement band, with its prices resolved for one anchor pair."""
    tag: ZoneTag
    lower_ratio: Decimal
    upper_ratio: Decimal
    top: Decimal
    bottom: Decimal

    def overlaps(self, low: Decimal, high: Decimal) -> bool:
        """True if the [low, high] price span touches the band."""
        return low <= self.top and high >= self.bottom

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag.value,
            "lower_ratio": str(self.lower_ratio),
            "upper_ratio": str(self.upper_ratio),
            "top": str(self.top),
            "bottom": str(self.bottom),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FibZone":
        return cls(
            tag=ZoneTag(data["tag"]),
            lower_ratio=Decimal(data["lower_ratio"]),
            upper_ratio=Decimal(data["upper_ratio"]),
            top=Decimal(data["top"]),
            bottom=Decimal(data["bottom"]),
        )


def resolve_direction(anchor_high: Pivot, anchor_low: Pivot) -> Direction:
    """Up when the low formed first, Down otherwise (sequence, not magnitude)."""
    if anchor_low.bar_index < anchor_high.bar_index:
        return Direction.UP
    return Direction.DOWN


def level_price(
    high: Decimal,
    low: Decimal,
    direction: Direction,
    ratio: Decimal,
) -> Decimal:
    """
    Price of a ratio in the frame of one anchor pair.

    Args:
        high: Anchor high price.
        low: Anchor low price.
        direction: UP or DOWN.
        ratio: 0..1 for retracements, > 1 for extensions.

    Returns:
        The absolute price.

    Examples:
        >>> level_price(Decimal("150"), Decimal("100"), Direction.UP, Decimal("0.618"))
        Decimal('119.100')
        >>> level_price(Decimal("150"), Decimal("100"), Direction.UP, Decimal("1.618"))
        Decimal('180.900')
    """
    swing_range = high - low
    if direction is Direction.UP:
        if ratio > 1:
            return high + (ratio - 1) * swing_range
        return high - ratio * swing_range
    if ratio > 1:
        return low - (ratio - 1) * swing_range
    return low + ratio * swing_range


@dataclass(frozen=True)
class LevelSet:
    """
    The complete level set for one anchor pair.

    Attributes:
        anchor_high: HIGH pivot of the pair.
        anchor_low: LOW pivot of the pair.
        direction: UP or DOWN.
        levels: Retracements (ascending ratio) then extensions (ascending).
        zones: Golden pocket and golden zone bands.
        condition: DEGENERATE_RANGE when no levels could be produced.
    """
    anchor_high: Pivot
    anchor_low: Pivot
    direction: Direction
    levels: Tuple[FibLevel, ...] = ()
    zones: Tuple[FibZone, ...] = ()
    condition: Optional[Condition] = None

    @property
    def range(self) -> Decimal:
        return self.anchor_high.price - self.anchor_low.price

    @property
    def is_degenerate(self) -> bool:
        return self.condition is Condition.DEGENERATE_RANGE

    @property
    def retracements(self) -> Tuple[FibLevel, ...]:
        return tuple(l for l in self.levels if l.kind is LevelKind.RETRACEMENT)

    @property
    def extensions(self) -> Tuple[FibLevel, ...]:
        return tuple(l for l in self.levels if l.kind is LevelKind.EXTENSION)

    @property
    def zero_price(self) -> Decimal:
        """0% anchor: the more recent pivot."""
        if self.direction is Direction.UP:
            return self.anchor_high.price
        return self.anchor_low.price

    @property
    def full_price(self) -> Decimal:
        """100% anchor: the older pivot."""
        if self.direction is Direction.UP:
            return self.anchor_low.price
        return self.anchor_high.price

    def price_at(self, ratio: Any) -> Decimal:
        return level_price(
            self.anchor_high.price,
            self.anchor_low.price,
            self.direction,
            to_decimal(ratio),
        )

    def level(self, ratio: Any) -> Optional[FibLevel]:
        ratio = to_decimal(ratio)
        for lvl in self.levels:
            if lvl.ratio == ratio:
                return lvl
        return None

    def zone(self, tag: ZoneTag) -> Optional[FibZone]:
        for z in self.zones:
            if z.tag is tag:
                return z
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anchor_high": self.anchor_high.to_dict(),
            "anchor_low": self.anchor_low.to_dict(),
            "direction": self.direction.value,
            "levels": [l.to_dict() for l in self.levels],
            "zones": [z.to_dict() for z in self.zones],
            "condition": self.condition.value if self.condition else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LevelSet":
        return cls(
            anchor_high=Pivot.from_dict(data["anchor_high"]),
            anchor_low=Pivot.from_dict(data["anchor_low"]),
            direction=Direction(data["direction"]),
            levels=tuple(FibLevel.from_dict(l) for l in data.get("levels", [])),
            zones=tuple(FibZone.from_dict(z) for z in data.get("zones", [])),
            condition=Condition(data["condition"]) if data.get("condition") else None,
        )


class FibonacciLevelEngine:
    """
    Stateless level derivation for an anchor pair.

    Example:
        >>> engine = FibonacciLevelEngine()
        >>> level_set = engine.recompute(anchor_high, anchor_low)
        >>> level_set.level("0.618").price
        Decimal('119.100')
    """

    def __init__(
        self,
        retracement_ratios: Iterable[Decimal] = RETRACEMENT_RATIOS,
        extension_ratios: Iterable[Decimal] = EXTENSION_RATIOS,
    ):
        self.retracement_ratios = tuple(sorted(to_decimal(r) for r in retracement_ratios))
        self.extension_ratios = tuple(sorted(to_decimal(r) for r in extension_ratios))

    @classmethod
    def from_config(cls, config) -> "FibonacciLevelEngine":
        return cls(config.retracement_ratios, config.extension_ratios)

    @staticmethod
    def _zone_tag(ratio: Decimal) -> Optional[ZoneTag]:
        # 0.618 bounds both bands; it carries the narrower one
        if GOLDEN_POCKET[0] <= ratio <= GOLDEN_POCKET[1]:
            return ZoneTag.GOLDEN_POCKET
        if GOLDEN_ZONE[0] <= ratio <= GOLDEN_ZONE[1]:
            return ZoneTag.GOLDEN_ZONE
        return None

    def recompute(self, anchor_high: Pivot, anchor_low: Pivot) -> LevelSet:
        """
        Build the level set for a pivot pair.

        Args:
            anchor_high: The HIGH pivot.
            anchor_low: The LOW pivot.

        Returns:
            A new LevelSet. Empty with DEGENERATE_RANGE when high <= low.

        Raises:
            InvalidPivotSequenceError: If the pair is not one HIGH and one LOW.
        """
        if anchor_high.kind is not PivotKind.HIGH or anchor_low.kind is not PivotKind.LOW:
            raise InvalidPivotSequenceError(
                f"Anchor pair must be (high, low), got "
                f"({anchor_high.kind.value}, {anchor_low.kind.value})"
            )

        direction = resolve_direction(anchor_high, anchor_low)
        high = anchor_high.price
        low = anchor_low.price

        if high <= low:
            logger.debug(
                f"Degenerate anchor range: high={high} low={low} "
                f"(bars {anchor_high.bar_index}/{anchor_low.bar_index})"
            )
            return LevelSet(
                anchor_high=anchor_high,
                anchor_low=anchor_low,
                direction=direction,
                condition=Condition.DEGENERATE_RANGE,
            )

        levels = []
        for ratio in self.retracement_ratios:
            levels.append(FibLevel(
                ratio=ratio,
                price=level_price(high, low, direction, ratio),
                kind=LevelKind.RETRACEMENT,
                zone=self._zone_tag(ratio),
            ))
        for ratio in self.extension_ratios:
            levels.append(FibLevel(
                ratio=ratio,
                price=level_price(high, low, direction, ratio),
                kind=LevelKind.EXTENSION,
            ))

        zones = []
        for tag in (ZoneTag.GOLDEN_POCKET, ZoneTag.GOLDEN_ZONE):
            lower_ratio, upper_ratio = ZONE_BANDS[tag]
            p1 = level_price(high, low, direction, lower_ratio)
            p2 = level_price(high, low, direction, upper_ratio)
            zones.append(FibZone(
                tag=tag,
                lower_ratio=lower_ratio,
                upper_ratio=upper_ratio,
                top=max(p1, p2),
                bottom=min(p1, p2),
            ))

        logger.debug(
            f"Recomputed {len(levels)} levels for {direction.value} pair "
            f"high={high}@{anchor_high.bar_index} low={low}@{anchor_low.bar_index}"
        )
        return LevelSet(
            anchor_high=anchor_high,
            anchor_low=anchor_low,
            direction=direction,
            levels=tuple(levels),
            zones=tuple(zones),
        )
