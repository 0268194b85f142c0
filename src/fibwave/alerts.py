"""
Alert State Emitter

Derives named boolean signals from the Active scenario on every bar, not
only the most recent one, so a historical replay sees every transition a
live feed would.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .fib_levels import ZoneTag
from .types import Bar

SCENARIO_ACTIVE = "scenario_active"
GOLDEN_POCKET_TOUCH = "golden_pocket_touch"
GOLDEN_ZONE_TOUCH = "golden_zone_touch"
CROSS_0 = "cross_0"
CROSS_100 = "cross_100"
CROSS_618 = "cross_618"

SIGNAL_NAMES = (
    CROSS_0,
    CROSS_100,
    CROSS_618,
    GOLDEN_POCKET_TOUCH,
    GOLDEN_ZONE_TOUCH,
    SCENARIO_ACTIVE,
)

_CROSS_RATIOS = {
    CROSS_0: Decimal("0"),
    CROSS_100: Decimal("1"),
    CROSS_618: Decimal("0.618"),
}


@dataclass(frozen=True)
class BoolSignal:
    name: str
    value: bool


def crossed(previous: Decimal, current: Decimal, level: Decimal) -> bool:
    """
    True if price moved from one side of level to the other (or onto it).

    Examples:
        >>> crossed(Decimal("120"), Decimal("118"), Decimal("119.1"))
        True
        >>> crossed(Decimal("118"), Decimal("118.5"), Decimal("119.1"))
        False
    """
    if previous < level:
        return current >= level
    if previous > level:
        return current <= level
    return False


class AlertStateEmitter:
    """
    Signal calculator whose only memory is the previous confirmed close.

    Unconfirmed bars are evaluated against that close too, but never
    replace it.
    """

    def __init__(self):
        self.previous_close: Optional[Decimal] = None

    def on_bar(self, bar: Bar, active_scenario) -> Tuple[BoolSignal, ...]:
        """
        Compute every signal for one bar.

        Args:
            bar: The bar being processed.
            active_scenario: The scenario to evaluate, or None. A
                scenario breached on this bar is still passed in (status
                INVALIDATED) so the breaching cross is reported.

        Returns:
            One BoolSignal per name in SIGNAL_NAMES, sorted by name.
        """
        values = {name: False for name in SIGNAL_NAMES}

        if active_scenario is not None:
            level_set = active_scenario.level_set
            values[SCENARIO_ACTIVE] = active_scenario.is_active

            for tag, name in ((ZoneTag.GOLDEN_POCKET, GOLDEN_POCKET_TOUCH),
                              (ZoneTag.GOLDEN_ZONE, GOLDEN_ZONE_TOUCH)):
                zone = level_set.zone(tag)
                if zone is not None:
                    values[name] = zone.overlaps(bar.low, bar.high)

            if self.previous_close is not None:
                for name, ratio in _CROSS_RATIOS.items():
                    values[name] = crossed(
                        self.previous_close, bar.close, level_set.price_at(ratio)
                    )

        if bar.confirmed:
            self.previous_close = bar.close

        return tuple(BoolSignal(name, values[name]) for name in SIGNAL_NAMES)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_close": str(self.previous_close) if self.previous_close is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertStateEmitter":
        emitter = cls()
        if data.get("previous_close") is not None:
            emitter.previous_close = Decimal(data["previous_close"])
        return emitter
