# Fib-Wave Engine
#
# Streaming pivot detection, Fibonacci levels, Elliott wave counting and
# scenario lifecycle management over a bar feed.

from .types import Bar, Pivot, PivotKind, Direction
from .engine_config import EngineConfig
from .errors import (
    Condition,
    EngineError,
    BarOrderError,
    InvalidPivotSequenceError,
    ObjectLimitExceededError,
)

from .pivot_detector import PivotDetector
from .fib_levels import FibonacciLevelEngine, FibLevel, FibZone, LevelSet, LevelKind, ZoneTag
from .wave_tracker import ElliottWaveTracker, WaveState, WaveLabel

# Drawable handles and render events
from .drawing import (
    ArtifactKind,
    DrawAction,
    DrawEvent,
    DrawingRegistry,
    StyleKey,
)
from .scenario_manager import ScenarioLifecycleManager, Scenario, ScenarioStatus
from .alerts import AlertStateEmitter, BoolSignal

# Lifecycle events
from .events import (
    EngineEvent,
    PivotConfirmedEvent,
    LevelsRecomputedEvent,
    WaveUpdatedEvent,
    ScenarioActivatedEvent,
    ScenarioInvalidatedEvent,
    ConditionEvent,
)

from .state import EngineState
from .engine import FibWaveEngine, BarResult, replay
