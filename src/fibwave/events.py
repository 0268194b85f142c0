"""
Engine Events

Defines lifecycle events emitted by the engine. Each event captures a
significant state change: a confirmed pivot, a level recompute, a wave
count change, a scenario activation or invalidation, or a locally
recovered condition.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Optional


@dataclass
class EngineEvent:
    """
    Base engine event.

    Attributes:
        event_type: Discriminator for event type routing/filtering.
        bar_index: Bar index when the event occurred.
        scenario_id: Affected scenario ("" when none applies).
    """

    event_type: str
    bar_index: int
    scenario_id: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
            elif isinstance(value, Enum):
                data[key] = value.value
        return data


@dataclass
class PivotConfirmedEvent(EngineEvent):
    """
    Emitted when a pivot survives its confirmation window.

    Attributes:
        event_type: Always "PIVOT_CONFIRMED".
        pivot_bar_index: Bar index of the extremum (bar_index - pivot_length).
        price: Pivot price.
        kind: "high" or "low".
    """

    event_type: Literal["PIVOT_CONFIRMED"] = field(default="PIVOT_CONFIRMED", init=False)
    pivot_bar_index: int = 0
    price: Decimal = field(default_factory=lambda: Decimal("0"))
    kind: str = ""


@dataclass
class LevelsRecomputedEvent(EngineEvent):
    """
    Emitted when the anchor pair changes and the level set is rebuilt.

    Attributes:
        event_type: Always "LEVELS_RECOMPUTED".
        direction: "up" or "down".
        level_count: Number of levels in the new set (0 when degenerate).
        high_bar_index: Bar index of the anchor high.
        low_bar_index: Bar index of the anchor low.
    """

    event_type: Literal["LEVELS_RECOMPUTED"] = field(default="LEVELS_RECOMPUTED", init=False)
    direction: str = ""
    level_count: int = 0
    high_bar_index: int = 0
    low_bar_index: int = 0


@dataclass
class WaveUpdatedEvent(EngineEvent):
    """
    Emitted after every pivot reaches the wave tracker.

    Attributes:
        event_type: Always "WAVE_UPDATED".
        wave_number: Position in the count (1..8).
        wave_label: "1".."5" or "A".."C".
        direction: "up" or "down".
        reset: True when the pivot reversed the impulse direction.
    """

    event_type: Literal["WAVE_UPDATED"] = field(default="WAVE_UPDATED", init=False)
    wave_number: int = 0
    wave_label: str = ""
    direction: str = ""
    reset: bool = False


@dataclass
class ScenarioActivatedEvent(EngineEvent):
    """
    Emitted when a scenario enters Active.

    Attributes:
        event_type: Always "SCENARIO_ACTIVATED".
        direction: "up" or "down".
        high_bar_index: Bar index of the anchor high.
        high_price: Anchor high price.
        low_bar_index: Bar index of the anchor low.
        low_price: Anchor low price.
        handle_count: Handles created for this scenario.

    Example:
        >>> from decimal import Decimal
        >>> event = ScenarioActivatedEvent(
        ...     bar_index=25,
        ...     scenario_id="scn-up-10-20",
        ...     direction="up",
        ...     high_bar_index=20,
        ...     high_price=Decimal("150"),
        ...     low_bar_index=10,
        ...     low_price=Decimal("100"),
        ... )
        >>> event.event_type
        'SCENARIO_ACTIVATED'
    """

    event_type: Literal["SCENARIO_ACTIVATED"] = field(default="SCENARIO_ACTIVATED", init=False)
    direction: str = ""
    high_bar_index: int = 0
    high_price: Decimal = field(default_factory=lambda: Decimal("0"))
    low_bar_index: int = 0
    low_price: Decimal = field(default_factory=lambda: Decimal("0"))
    handle_count: int = 0

    def get_explanation(self) -> str:
        swing_range = self.high_price - self.low_price
        return (
            f"{self.direction.upper()} scenario on {self.low_price} -> {self.high_price} "
            f"(range {swing_range}), {self.handle_count} artifacts"
        )


@dataclass
class ScenarioInvalidatedEvent(EngineEvent):
    """
    Emitted when the Active scenario is torn down.

    Attributes:
        event_type: Always "SCENARIO_INVALIDATED".
        reason: "superseded" or "price_breach".
        close_price: Close that breached the anchors (price_breach only).
        handles_released: Handles released in the same transition.
    """

    event_type: Literal["SCENARIO_INVALIDATED"] = field(
        default="SCENARIO_INVALIDATED", init=False
    )
    reason: str = ""
    close_price: Optional[Decimal] = None
    handles_released: int = 0

    def get_explanation(self) -> str:
        if self.reason == "price_breach":
            return f"Close {self.close_price} left the anchor range - scenario invalidated"
        return "New pivot pair redefined the anchors - scenario superseded"


@dataclass
class ConditionEvent(EngineEvent):
    """
    Emitted for a locally recovered condition.

    Attributes:
        event_type: Always "CONDITION".
        condition: Condition value (e.g. "degenerate_range").
        detail: Human-readable detail.
    """

    event_type: Literal["CONDITION"] = field(default="CONDITION", init=False)
    condition: str = ""
    detail: str = ""
