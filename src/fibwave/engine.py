"""
Fib-Wave Engine

Drives the per-bar pipeline:

    PivotDetector -> (new pivot) FibonacciLevelEngine -> ElliottWaveTracker
        -> ScenarioLifecycleManager.reconcile
    ScenarioLifecycleManager.on_bar -> AlertStateEmitter (every bar)

Pivot, level and wave work runs only when a pivot confirms. Invalidation
checks and alert signals run on every bar. Batch replay is process_bar()
in a loop, so batch and incremental runs produce identical output.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .alerts import BoolSignal
from .drawing import DrawEvent
from .engine_config import EngineConfig
from .errors import BarOrderError, Condition, InvalidPivotSequenceError
from .events import (
    ConditionEvent,
    EngineEvent,
    LevelsRecomputedEvent,
    PivotConfirmedEvent,
    WaveUpdatedEvent,
)
from .fib_levels import FibonacciLevelEngine, LevelSet
from .scenario_manager import LifecycleUpdate, Scenario
from .state import EngineState
from .types import Bar, Pivot
from .wave_tracker import WaveState

logger = logging.getLogger(__name__)


@dataclass
class BarResult:
    """
    Everything produced by one bar.

    Attributes:
        bar_index: Index of the processed bar.
        pivot: Pivot confirmed on this bar, if any.
        level_set: Level set rebuilt on this bar, if any.
        wave_state: Wave state after this bar's pivot, if any.
        events: Lifecycle events in emission order.
        draw_events: Render instructions in emission order.
        signals: Alert signals, sorted by name.
        conditions: Recovered conditions raised by this bar.
    """
    bar_index: int
    pivot: Optional[Pivot] = None
    level_set: Optional[LevelSet] = None
    wave_state: Optional[WaveState] = None
    events: List[EngineEvent] = field(default_factory=list)
    draw_events: List[DrawEvent] = field(default_factory=list)
    signals: Tuple[BoolSignal, ...] = ()
    conditions: List[Condition] = field(default_factory=list)

    def signal(self, name: str) -> bool:
        for sig in self.signals:
            if sig.name == name:
                return sig.value
        raise KeyError(name)

    def _apply(self, update: LifecycleUpdate) -> None:
        self.events.extend(update.events)
        self.draw_events.extend(update.draw_events)
        self.conditions.extend(update.conditions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bar_index": self.bar_index,
            "pivot": self.pivot.to_dict() if self.pivot else None,
            "level_set": self.level_set.to_dict() if self.level_set else None,
            "wave_number": self.wave_state.wave_number if self.wave_state else None,
            "events": [e.to_dict() for e in self.events],
            "draw_events": [d.to_dict() for d in self.draw_events],
            "signals": {s.name: s.value for s in self.signals},
            "conditions": [c.value for c in self.conditions],
        }


class FibWaveEngine:
    """
    Streaming pivot / Fibonacci / wave engine.

    Example:
        >>> engine = FibWaveEngine(EngineConfig.default())
        >>> for bar in bars:
        ...     result = engine.process_bar(bar)
        ...     for draw in result.draw_events:
        ...         renderer.apply(draw)
    """

    def __init__(self, config: EngineConfig = None):
        config = config or EngineConfig.default()
        self.config = config
        self.state = EngineState(config=config)
        self.levels = FibonacciLevelEngine.from_config(config)

    @property
    def detector(self):
        return self.state.detector

    @property
    def tracker(self):
        return self.state.tracker

    @property
    def manager(self):
        return self.state.manager

    @property
    def registry(self):
        return self.state.manager.registry

    @property
    def active_scenario(self) -> Optional[Scenario]:
        return self.state.manager.active

    def _check_order(self, bar: Bar) -> None:
        """Raise BarOrderError unless bar may follow the bars already seen."""
        state = self.state
        if bar.index <= state.last_confirmed_index:
            raise BarOrderError(bar.index, state.last_confirmed_index)
        if state.pending_index is not None and bar.index < state.pending_index:
            raise BarOrderError(bar.index, state.last_confirmed_index)

    def process_bar(self, bar: Bar) -> BarResult:
        """
        Process a single bar.

        Args:
            bar: The next bar. A confirmed bar must have an index greater
                than every confirmed bar before it; an unconfirmed bar may
                be repeated with the same index until it closes.

        Returns:
            BarResult with events, draw events, signals and conditions.

        Raises:
            BarOrderError: If the bar is out of order. No state is changed.
        """
        self._check_order(bar)

        state = self.state
        if bar.confirmed:
            state.last_confirmed_index = bar.index
            state.pending_index = None
        else:
            state.pending_index = bar.index

        result = BarResult(bar_index=bar.index)

        pivot = state.detector.on_bar(bar)
        if not state.detector.has_full_window:
            result.conditions.append(Condition.INSUFFICIENT_HISTORY)
            result.events.append(ConditionEvent(
                bar_index=bar.index,
                scenario_id="",
                condition=Condition.INSUFFICIENT_HISTORY.value,
                detail=(
                    f"{state.detector.bars_in_window}/{state.detector.window_size} "
                    f"confirmed bars"
                ),
            ))

        if pivot is not None:
            self._on_pivot(pivot, bar, result)

        # Captured before the breach check so the breaching bar's crosses are reported
        scenario = state.manager.active
        result._apply(state.manager.on_bar(bar))
        result.signals = state.alerts.on_bar(bar, state.manager.active or scenario)
        return result

    def _on_pivot(self, pivot: Pivot, bar: Bar, result: BarResult) -> None:
        state = self.state
        active_id = state.manager.active.scenario_id if state.manager.active else ""
        result.pivot = pivot
        result.events.append(PivotConfirmedEvent(
            bar_index=bar.index,
            scenario_id=active_id,
            pivot_bar_index=pivot.bar_index,
            price=pivot.price,
            kind=pivot.kind.value,
        ))

        level_set = self._recompute_levels(bar, result, active_id)

        previous_direction = state.tracker.direction
        wave_state = state.tracker.on_pivot(pivot)
        result.wave_state = wave_state
        result.events.append(WaveUpdatedEvent(
            bar_index=bar.index,
            scenario_id=active_id,
            wave_number=wave_state.wave_number,
            wave_label=wave_state.wave_label,
            direction=wave_state.direction.value,
            reset=previous_direction is not None and previous_direction is not wave_state.direction,
        ))

        if level_set is not None:
            result._apply(state.manager.reconcile(level_set, wave_state, bar.index))

    def _recompute_levels(
        self, bar: Bar, result: BarResult, active_id: str
    ) -> Optional[LevelSet]:
        """Level set for the latest High/Low pair, or None to keep the current scenario."""
        anchor_high = self.state.detector.latest_high
        anchor_low = self.state.detector.latest_low
        if anchor_high is None or anchor_low is None:
            logger.debug(f"Bar {bar.index}: waiting for an opposite-kind pivot")
            return None

        try:
            level_set = self.levels.recompute(anchor_high, anchor_low)
        except InvalidPivotSequenceError as e:
            logger.debug(f"Bar {bar.index}: {e}; keeping current scenario")
            result.conditions.append(Condition.INVALID_PIVOT_SEQUENCE)
            result.events.append(ConditionEvent(
                bar_index=bar.index,
                scenario_id=active_id,
                condition=Condition.INVALID_PIVOT_SEQUENCE.value,
                detail=str(e),
            ))
            return None

        result.level_set = level_set
        result.events.append(LevelsRecomputedEvent(
            bar_index=bar.index,
            scenario_id=active_id,
            direction=level_set.direction.value,
            level_count=len(level_set.levels),
            high_bar_index=anchor_high.bar_index,
            low_bar_index=anchor_low.bar_index,
        ))
        return level_set

    def replay(
        self,
        bars: Iterable[Bar],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[BarResult]:
        """Process bars in order; identical to calling process_bar() on each."""
        bars = list(bars)
        total = len(bars)
        results = []
        for i, bar in enumerate(bars):
            results.append(self.process_bar(bar))
            if progress_callback:
                progress_callback(i + 1, total)
        return results

    def get_state(self) -> EngineState:
        """
        Get serializable state for persistence.

        Returns:
            EngineState that can be serialized to JSON.
        """
        return self.state

    @classmethod
    def from_state(cls, state: EngineState) -> "FibWaveEngine":
        """
        Restore from serialized state.

        Args:
            state: EngineState to restore from.

        Returns:
            FibWaveEngine continuing from the given state.
        """
        engine = cls(state.config)
        engine.state = state
        return engine


def replay(
    bars: Iterable[Bar],
    config: EngineConfig = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Tuple[FibWaveEngine, List[BarResult]]:
    """
    Run the engine over historical bars.

    Args:
        bars: Bars in index order.
        config: Engine configuration (defaults to EngineConfig.default()).
        progress_callback: Optional callback(current, total).

    Returns:
        Tuple of (engine with state, per-bar results).

    Example:
        >>> engine, results = replay(bars)
        >>> engine.active_scenario
        >>> new_result = engine.process_bar(new_bar)
    """
    engine = FibWaveEngine(config)
    results = engine.replay(bars, progress_callback=progress_callback)
    return engine, results
