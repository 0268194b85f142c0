"""Core data types for the fib-wave engine."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


def to_decimal(value: Any) -> Decimal:
    """Convert a price to Decimal via str() so floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class PivotKind(Enum):
    HIGH = "high"
    LOW = "low"

    @property
    def opposite(self) -> "PivotKind":
        return PivotKind.LOW if self is PivotKind.HIGH else PivotKind.HIGH


class Direction(Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Bar:
    """
    Single price bar as delivered by the feed.

    Only confirmed bars (closed bars) may finalize a pivot or invalidate
    a scenario. Prices are coerced to Decimal on construction.
    """
    index: int
    high: Decimal
    low: Decimal
    close: Decimal
    confirmed: bool = True
    open: Optional[Decimal] = None
    timestamp: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "high", to_decimal(self.high))
        object.__setattr__(self, "low", to_decimal(self.low))
        object.__setattr__(self, "close", to_decimal(self.close))
        if self.open is not None:
            object.__setattr__(self, "open", to_decimal(self.open))

    @property
    def date(self) -> Optional[datetime]:
        if self.timestamp is None:
            return None
        return datetime.fromtimestamp(self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "confirmed": self.confirmed,
            "open": str(self.open) if self.open is not None else None,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bar":
        return cls(
            index=data["index"],
            high=Decimal(data["high"]),
            low=Decimal(data["low"]),
            close=Decimal(data["close"]),
            confirmed=data.get("confirmed", True),
            open=Decimal(data["open"]) if data.get("open") is not None else None,
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class Pivot:
    """
    A confirmed swing extremum.

    Attributes:
        bar_index: Bar index of the extremum itself.
        price: High of that bar for HIGH pivots, low for LOW pivots.
        kind: HIGH or LOW.
        confirmed_at_index: Index of the bar that completed the
            confirmation window (bar_index + pivot_length).
    """
    bar_index: int
    price: Decimal
    kind: PivotKind
    confirmed_at_index: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", to_decimal(self.price))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bar_index": self.bar_index,
            "price": str(self.price),
            "kind": self.kind.value,
            "confirmed_at_index": self.confirmed_at_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pivot":
        return cls(
            bar_index=data["bar_index"],
            price=Decimal(data["price"]),
            kind=PivotKind(data["kind"]),
            confirmed_at_index=data["confirmed_at_index"],
        )
