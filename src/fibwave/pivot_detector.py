"""
Incremental Pivot Detector

Confirms swing highs and lows with a symmetric window of L bars on each
side of the candidate. At confirmed bar N the candidate is bar N - L, so
every pivot is emitted exactly L bars after the extremum formed.

Only the last 2L + 1 confirmed bars are held (ring buffer), plus a small
ring of recent pivots. The latest High and latest Low sit in their own
slots, so a run of same-kind pivots can never evict the opposite anchor.
Nothing here grows with the length of the feed.
"""

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence

from .types import Bar, Pivot, PivotKind

logger = logging.getLogger(__name__)


def is_swing_high(idx: int, highs: Sequence, lookback: int) -> bool:
    """
    Check if bar at idx is a swing high.

    A swing high has the highest high in the ±lookback window.
    """
    n = len(highs)
    if idx < lookback or idx >= n - lookback:
        return False

    center_high = highs[idx]
    for i in range(idx - lookback, idx + lookback + 1):
        if i != idx and highs[i] > center_high:
            return False
        # Tie-breaking: earlier bar wins for equal values
        if i != idx and highs[i] == center_high and i < idx:
            return False

    return True


def is_swing_low(idx: int, lows: Sequence, lookback: int) -> bool:
    """
    Check if bar at idx is a swing low.

    A swing low has the lowest low in the ±lookback window.
    """
    n = len(lows)
    if idx < lookback or idx >= n - lookback:
        return False

    center_low = lows[idx]
    for i in range(idx - lookback, idx + lookback + 1):
        if i != idx and lows[i] < center_low:
            return False
        # Tie-breaking: earlier bar wins for equal values
        if i != idx and lows[i] == center_low and i < idx:
            return False

    return True


class PivotDetector:
    """
    Streaming pivot confirmation over a fixed 2L + 1 bar window.

    Example:
        >>> detector = PivotDetector(pivot_length=2)
        >>> for bar in bars:
        ...     pivot = detector.on_bar(bar)
        ...     if pivot:
        ...         print(pivot.kind, pivot.bar_index, pivot.price)
    """

    def __init__(self, pivot_length: int, history: int = 8):
        """
        Args:
            pivot_length: Bars on each side of the candidate (L >= 1).
            history: Capacity of the recent-pivot ring buffer.
        """
        if pivot_length < 1:
            raise ValueError(f"pivot_length must be >= 1, got {pivot_length}")
        self.pivot_length = pivot_length
        self._window: Deque[Bar] = deque(maxlen=2 * pivot_length + 1)
        self._pivots: Deque[Pivot] = deque(maxlen=history)
        self._latest: Dict[PivotKind, Optional[Pivot]] = {
            PivotKind.HIGH: None,
            PivotKind.LOW: None,
        }
        self.bars_seen = 0

    @property
    def window_size(self) -> int:
        return self._window.maxlen

    @property
    def bars_in_window(self) -> int:
        return len(self._window)

    @property
    def has_full_window(self) -> bool:
        """True once 2L + 1 confirmed bars have been seen."""
        return len(self._window) == self._window.maxlen

    @property
    def pivots(self) -> List[Pivot]:
        """Recent pivots, oldest first."""
        return list(self._pivots)

    @property
    def last_pivot(self) -> Optional[Pivot]:
        return self._pivots[-1] if self._pivots else None

    def latest(self, kind: PivotKind) -> Optional[Pivot]:
        """Most recent pivot of the given kind, however old."""
        return self._latest[kind]

    @property
    def latest_high(self) -> Optional[Pivot]:
        return self.latest(PivotKind.HIGH)

    @property
    def latest_low(self) -> Optional[Pivot]:
        return self.latest(PivotKind.LOW)

    def on_bar(self, bar: Bar) -> Optional[Pivot]:
        """
        Admit one bar and return a newly confirmed pivot, if any.

        Unconfirmed bars are ignored: they may still change, so they can
        neither fill the window nor complete a confirmation.
        """
        if not bar.confirmed:
            return None

        self._window.append(bar)
        self.bars_seen += 1

        if not self.has_full_window:
            return None

        center = self.pivot_length
        highs = [b.high for b in self._window]
        lows = [b.low for b in self._window]
        high_hit = is_swing_high(center, highs, self.pivot_length)
        low_hit = is_swing_low(center, lows, self.pivot_length)

        if not (high_hit or low_hit):
            return None

        if high_hit and low_hit:
            # Outside bar: keep the sequence alternating
            last = self.last_pivot
            kind = last.kind.opposite if last else PivotKind.HIGH
        else:
            kind = PivotKind.HIGH if high_hit else PivotKind.LOW

        candidate = self._window[center]
        pivot = Pivot(
            bar_index=candidate.index,
            price=candidate.high if kind is PivotKind.HIGH else candidate.low,
            kind=kind,
            confirmed_at_index=bar.index,
        )
        self._pivots.append(pivot)
        self._latest[kind] = pivot
        logger.debug(
            f"Pivot {kind.value} confirmed at bar {pivot.bar_index} "
            f"@ {pivot.price} (confirmed on bar {bar.index})"
        )
        return pivot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pivot_length": self.pivot_length,
            "history": self._pivots.maxlen,
            "window": [b.to_dict() for b in self._window],
            "pivots": [p.to_dict() for p in self._pivots],
            "latest": {
                k.value: p.to_dict() for k, p in self._latest.items() if p is not None
            },
            "bars_seen": self.bars_seen,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PivotDetector":
        detector = cls(data["pivot_length"], history=data.get("history", 8))
        for bar_data in data.get("window", []):
            detector._window.append(Bar.from_dict(bar_data))
        for pivot_data in data.get("pivots", []):
            detector._pivots.append(Pivot.from_dict(pivot_data))
            pivot = detector._pivots[-1]
            detector._latest[pivot.kind] = pivot
        for kind_value, pivot_data in data.get("latest", {}).items():
            detector._latest[PivotKind(kind_value)] = Pivot.from_dict(pivot_data)
        detector.bars_seen = data.get("bars_seen", len(detector._window))
        return detector
