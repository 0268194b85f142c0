"""
Elliott Wave Tracker

Maintains a simplified impulse count over the pivot stream. The count is
a heuristic: each alternating pivot that keeps the established direction
advances the wave, and a pivot that breaks the direction restarts at 1.

No wave legality checks are made (wave-2 depth, wave-3 length, wave-4
overlap). The count is a labelling aid, not a validated wave structure.
"""

import logging
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Deque, Dict, List, Optional, Tuple

from .constants import DEFAULT_WAVE_LABEL_CAP, WAVE_LABELS
from .types import Direction, Pivot, PivotKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaveLabel:
    """A wave label pinned to a pivot."""
    bar_index: int
    price: Decimal
    text: str
    kind: PivotKind

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.bar_index}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bar_index": self.bar_index,
            "price": str(self.price),
            "text": self.text,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WaveLabel":
        return cls(
            bar_index=data["bar_index"],
            price=Decimal(data["price"]),
            text=data["text"],
            kind=PivotKind(data["kind"]),
        )


@dataclass(frozen=True)
class WaveState:
    """
    Snapshot of the wave count after a pivot.

    Attributes:
        wave_number: Position in the count, 1..8 (6..8 are A..C).
            0 before the first pivot.
        direction: Direction of the current impulse (None before any pivot).
        anchor_pivots: Pivots of the current impulse, oldest first.
        labels: Visible labels, oldest first (bounded FIFO).
    """
    wave_number: int = 0
    direction: Optional[Direction] = None
    anchor_pivots: Tuple[Pivot, ...] = ()
    labels: Tuple[WaveLabel, ...] = ()

    @property
    def wave_label(self) -> Optional[str]:
        if self.wave_number == 0:
            return None
        return WAVE_LABELS[self.wave_number - 1]

    @property
    def label_count(self) -> int:
        return len(self.labels)


class ElliottWaveTracker:
    """
    Incremental wave counter fed by confirmed pivots.

    Example:
        >>> tracker = ElliottWaveTracker(label_cap=20)
        >>> state = tracker.on_pivot(pivot)
        >>> state.wave_label
        '1'
    """

    def __init__(self, label_cap: int = DEFAULT_WAVE_LABEL_CAP):
        self.label_cap = label_cap
        self.wave_number = 0
        self.direction: Optional[Direction] = None
        self._anchors: List[Pivot] = []
        self._labels: Deque[WaveLabel] = deque(maxlen=label_cap)
        self.labels_retired = 0

    @property
    def state(self) -> WaveState:
        return WaveState(
            wave_number=self.wave_number,
            direction=self.direction,
            anchor_pivots=tuple(self._anchors),
            labels=tuple(self._labels),
        )

    def on_pivot(self, pivot: Pivot) -> WaveState:
        """Advance, extend, or reset the count with a new pivot."""
        last = self._anchors[-1] if self._anchors else None

        if last is None:
            direction = Direction.UP if pivot.kind is PivotKind.LOW else Direction.DOWN
            self._start(pivot, direction)
        elif pivot.kind is last.kind:
            if self._is_more_extreme(pivot, last):
                self._anchors[-1] = pivot
                self._labels.pop()
                self._add_label(pivot)
        elif self._reverses(pivot):
            reversed_to = Direction.DOWN if self.direction is Direction.UP else Direction.UP
            logger.debug(
                f"Wave count reset: {pivot.kind.value} @ {pivot.price} "
                f"(bar {pivot.bar_index}) reverses {self.direction.value}"
            )
            self._start(pivot, reversed_to)
        elif self.wave_number == len(WAVE_LABELS):
            # Count complete through C: a new cycle starts in the same direction
            self._start(pivot, self.direction)
        else:
            self._anchors.append(pivot)
            self.wave_number += 1
            self._add_label(pivot)

        return self.state

    def _start(self, pivot: Pivot, direction: Direction) -> None:
        self.direction = direction
        self.wave_number = 1
        self._anchors = [pivot]
        self._add_label(pivot)

    def _add_label(self, pivot: Pivot) -> None:
        if len(self._labels) == self.label_cap:
            self.labels_retired += 1
        self._labels.append(WaveLabel(
            bar_index=pivot.bar_index,
            price=pivot.price,
            text=WAVE_LABELS[self.wave_number - 1],
            kind=pivot.kind,
        ))

    @staticmethod
    def _is_more_extreme(pivot: Pivot, last: Pivot) -> bool:
        if pivot.kind is PivotKind.HIGH:
            return pivot.price > last.price
        return pivot.price < last.price

    def _reverses(self, pivot: Pivot) -> bool:
        """Lower than the previous same-kind anchor in an Up impulse, higher in a Down one."""
        previous = next(
            (p for p in reversed(self._anchors) if p.kind is pivot.kind), None
        )
        if previous is None:
            return False
        if self.direction is Direction.UP:
            return pivot.price < previous.price
        return pivot.price > previous.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label_cap": self.label_cap,
            "wave_number": self.wave_number,
            "direction": self.direction.value if self.direction else None,
            "anchors": [p.to_dict() for p in self._anchors],
            "labels": [l.to_dict() for l in self._labels],
            "labels_retired": self.labels_retired,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElliottWaveTracker":
        tracker = cls(label_cap=data.get("label_cap", DEFAULT_WAVE_LABEL_CAP))
        tracker.wave_number = data.get("wave_number", 0)
        direction = data.get("direction")
        tracker.direction = Direction(direction) if direction else None
        tracker._anchors = [Pivot.from_dict(p) for p in data.get("anchors", [])]
        for label_data in data.get("labels", []):
            tracker._labels.append(WaveLabel.from_dict(label_data))
        tracker.labels_retired = data.get("labels_retired", 0)
        return tracker
