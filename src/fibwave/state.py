"""
Engine State

Everything the engine carries from one bar to the next, in one struct.
Nothing lives outside it, so a checkpoint taken between bars restores an
engine that continues exactly as the original would have.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .alerts import AlertStateEmitter
from .engine_config import EngineConfig
from .pivot_detector import PivotDetector
from .scenario_manager import ScenarioLifecycleManager
from .wave_tracker import ElliottWaveTracker

STATE_VERSION = 1


@dataclass
class EngineState:
    """
    Serializable state for pause/resume.

    Attributes:
        config: Configuration the state was built with.
        detector: Pivot window and recent pivot history.
        tracker: Wave count and visible labels.
        manager: Active scenario and its drawable handles.
        alerts: Previous confirmed close.
        last_confirmed_index: Index of the last confirmed bar (-1 before any).
        pending_index: Index of a bar seen unconfirmed and not yet closed.
    """

    config: EngineConfig = field(default_factory=EngineConfig.default)
    detector: Optional[PivotDetector] = None
    tracker: Optional[ElliottWaveTracker] = None
    manager: Optional[ScenarioLifecycleManager] = None
    alerts: Optional[AlertStateEmitter] = None
    last_confirmed_index: int = -1
    pending_index: Optional[int] = None

    def __post_init__(self) -> None:
        if self.detector is None:
            self.detector = PivotDetector(
                self.config.pivot_length, history=self.config.pivot_history
            )
        if self.tracker is None:
            self.tracker = ElliottWaveTracker(label_cap=self.config.wave_label_cap)
        if self.manager is None:
            self.manager = ScenarioLifecycleManager(self.config)
        if self.alerts is None:
            self.alerts = AlertStateEmitter()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": STATE_VERSION,
            "config": self.config.to_dict(),
            "detector": self.detector.to_dict(),
            "tracker": self.tracker.to_dict(),
            "manager": self.manager.to_dict(),
            "alerts": self.alerts.to_dict(),
            "last_confirmed_index": self.last_confirmed_index,
            "pending_index": self.pending_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineState":
        """Restore from dictionary (the inverse of to_dict)."""
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise ValueError(f"Unsupported state version {version} (expected {STATE_VERSION})")

        config = EngineConfig.from_dict(data["config"])
        return cls(
            config=config,
            detector=PivotDetector.from_dict(data["detector"]),
            tracker=ElliottWaveTracker.from_dict(data["tracker"]),
            manager=ScenarioLifecycleManager.from_dict(data["manager"], config),
            alerts=AlertStateEmitter.from_dict(data.get("alerts", {})),
            last_confirmed_index=data.get("last_confirmed_index", -1),
            pending_index=data.get("pending_index"),
        )
