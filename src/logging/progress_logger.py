"""
Progress Logger Module

Replay feedback for the CLI: a progress line every N bars and an
immediate line for each scenario activation or invalidation.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from src.fibwave.events import EngineEvent

MAJOR_EVENT_TYPES = ("SCENARIO_ACTIVATED", "SCENARIO_INVALIDATED")


class ProgressLogger:
    """
    Periodic progress and scenario lifecycle logging for engine replays.

    Example:
        >>> progress = ProgressLogger(interval_bars=1000)
        >>> for bar in bars:
        ...     result = engine.process_bar(bar)
        ...     for event in result.events:
        ...         progress.on_event(event)
        ...     progress.check_progress(bar.index + 1, len(bars), bar.timestamp)
    """

    def __init__(self, interval_bars: int = 100, log_major_events: bool = True):
        self.interval_bars = interval_bars
        self.log_major_events = log_major_events

        self.last_report_bar = 0
        self.pending_counts: Counter = Counter()
        self.active_scenario_id: Optional[str] = None

        self.logger = logging.getLogger(__name__)

    def on_event(self, event: EngineEvent) -> None:
        """Count an event for the next report; log lifecycle events now."""
        self.pending_counts[event.event_type] += 1

        if event.event_type == "SCENARIO_ACTIVATED":
            self.active_scenario_id = event.scenario_id
        elif event.event_type == "SCENARIO_INVALIDATED":
            if self.active_scenario_id == event.scenario_id:
                self.active_scenario_id = None

        if self.log_major_events and event.event_type in MAJOR_EVENT_TYPES:
            self.logger.info(
                f"MAJOR EVENT: {event.event_type} at bar {event.bar_index} "
                f"[{event.scenario_id or 'none'}] - {event.get_explanation()}"
            )

    def check_progress(self,
                       current_bar_idx: int,
                       total_bars: int,
                       timestamp: Optional[float] = None) -> bool:
        """
        Emit a progress line if interval_bars have passed since the last one.

        Returns:
            True if a line was emitted
        """
        if current_bar_idx - self.last_report_bar < self.interval_bars:
            return False

        if timestamp is not None:
            when = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime('%Y-%m-%d %H:%M')
        else:
            when = "n/a"
        pct = current_bar_idx / max(1, total_bars) * 100
        counts = ", ".join(
            f"{name}:{n}" for name, n in sorted(self.pending_counts.items())
        ) or "none"

        self.logger.info(
            f"Progress: bar {current_bar_idx}/{total_bars} ({pct:.1f}%) | "
            f"time: {when} | active: {self.active_scenario_id or 'none'} | "
            f"events: {counts}"
        )
        self.last_report_bar = current_bar_idx
        self.pending_counts.clear()
        return True
