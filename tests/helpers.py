"""
Shared test utilities for engine tests.

These are plain utility functions, not pytest fixtures.
"""

from decimal import Decimal
from typing import List, Sequence, Tuple

from src.fibwave.engine import BarResult, FibWaveEngine
from src.fibwave.engine_config import EngineConfig
from src.fibwave.fib_levels import FibonacciLevelEngine, LevelSet
from src.fibwave.types import Bar

from conftest import make_bar, make_pivot


def ramp_bars(waypoints: Sequence[Tuple[int, float]]) -> List[Bar]:
    """
    Build zero-range bars that move linearly between waypoints.

    Each bar has high == low == close, so pivots land exactly on the
    waypoint prices. Waypoints must be (index, price) with increasing
    indices starting at 0.

    Example:
        >>> bars = ramp_bars([(0, 120), (10, 100), (20, 150)])
        >>> bars[10].low, bars[20].high
        (Decimal('100'), Decimal('150'))
    """
    bars = []
    for (i0, p0), (i1, p1) in zip(waypoints, waypoints[1:]):
        p0 = Decimal(str(p0))
        p1 = Decimal(str(p1))
        start = i0 if not bars else i0 + 1
        for i in range(start, i1 + 1):
            price = p0 + (p1 - p0) * (i - i0) / (i1 - i0)
            bars.append(make_bar(i, price, price, price))
    return bars


# Low 100 @ 10, High 150 @ 20 (confirmed on bar 22 with pivot_length=2)
UP_SWING = [(0, 120), (10, 100), (20, 150), (25, 135)]

# Same swing, then a higher low at 26 (confirmed on bar 28)
UP_SWING_THEN_HIGHER_LOW = [(0, 120), (10, 100), (20, 150), (26, 132), (30, 140)]


def batch_process_bars(
    bars: List[Bar],
    config: EngineConfig = None,
) -> Tuple[FibWaveEngine, List[BarResult]]:
    """
    Process bars through a fresh engine one at a time.

    Returns:
        Tuple of (engine, per-bar results)
    """
    engine = FibWaveEngine(config or EngineConfig.default())
    results = [engine.process_bar(bar) for bar in bars]
    return engine, results


def make_level_set(
    low: float = 100,
    low_idx: int = 10,
    high: float = 150,
    high_idx: int = 20,
    config: EngineConfig = None,
) -> LevelSet:
    """Level set for a single High/Low pair."""
    engine = FibonacciLevelEngine.from_config(config or EngineConfig.default())
    return engine.recompute(
        make_pivot(high_idx, high, "high"),
        make_pivot(low_idx, low, "low"),
    )


def event_types(result: BarResult) -> List[str]:
    return [e.event_type for e in result.events]
