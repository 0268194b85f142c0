"""
Shared test fixtures and helpers for engine tests.
"""

import pytest
from decimal import Decimal

from src.fibwave.engine_config import EngineConfig
from src.fibwave.types import Bar, Pivot, PivotKind


def make_bar(
    index: int,
    high: float,
    low: float,
    close: float = None,
    confirmed: bool = True,
    timestamp: int = None,
) -> Bar:
    """Helper to create Bar objects for testing.

    Args:
        index: Bar index in the sequence
        high: High price
        low: Low price
        close: Closing price (defaults to the bar midpoint)
        confirmed: Whether the bar is closed
        timestamp: Unix timestamp (defaults to 1700000000 + index * 60)

    Returns:
        Bar object for use in engine tests
    """
    high = Decimal(str(high))
    low = Decimal(str(low))
    if close is None:
        close = (high + low) / 2
    return Bar(
        index=index,
        high=high,
        low=low,
        close=Decimal(str(close)),
        confirmed=confirmed,
        timestamp=timestamp or 1700000000 + index * 60,
    )


def make_pivot(bar_index: int, price, kind: str, confirmed_at_index: int = None) -> Pivot:
    """Helper to create a Pivot ("high" or "low")."""
    return Pivot(
        bar_index=bar_index,
        price=Decimal(str(price)),
        kind=PivotKind(kind),
        confirmed_at_index=confirmed_at_index if confirmed_at_index is not None else bar_index,
    )


@pytest.fixture
def small_config():
    """Config with a short pivot window so scenarios form in a handful of bars."""
    return EngineConfig.default().with_overrides(pivot_length=2)
