"""
Scenario Lifecycle Manager

Owns the single Active scenario and every drawable handle that belongs
to it. Transitions:

    Inactive --(new pivot pair, range > min_anchor_range)--> Active
    Active --(confirmed close beyond 0% / 100% anchor)--> Invalidated
    Active --(new pivot pair, unconditionally)--> Invalidated
    Invalidated --(all handles released)--> removed

The Invalidated -> removed step runs synchronously inside the transition
that invalidated the scenario, so a new scenario never sees handles of
the old one.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .drawing import (
    ArtifactKind,
    ArtifactSpec,
    DrawEvent,
    DrawingRegistry,
    StyleKey,
)
from .engine_config import EngineConfig
from .errors import Condition
from .events import (
    ConditionEvent,
    EngineEvent,
    ScenarioActivatedEvent,
    ScenarioInvalidatedEvent,
)
from .fib_levels import LevelSet, ZoneTag
from .types import Bar, Direction, Pivot
from .wave_tracker import WaveLabel, WaveState

logger = logging.getLogger(__name__)


class ScenarioStatus(Enum):
    ACTIVE = "active"
    INVALIDATED = "invalidated"


REASON_SUPERSEDED = "superseded"
REASON_PRICE_BREACH = "price_breach"

# Box order: the pocket is the narrower, higher-value band
_ZONE_PRIORITY = {ZoneTag.GOLDEN_POCKET: 0, ZoneTag.GOLDEN_ZONE: 1}


@dataclass
class Scenario:
    """
    Anchor pair + levels + wave state, managed as one unit.

    Attributes:
        scenario_id: Deterministic ID from direction and anchor bars.
        level_set: Levels derived from the anchor pair.
        wave_state: Wave count at activation time.
        activated_at: Bar index of activation.
        status: ACTIVE or INVALIDATED.
        invalidated_at: Bar index of invalidation.
        invalidation_reason: "superseded" or "price_breach".
    """
    scenario_id: str
    level_set: LevelSet
    wave_state: WaveState
    activated_at: int
    status: ScenarioStatus = ScenarioStatus.ACTIVE
    invalidated_at: Optional[int] = None
    invalidation_reason: Optional[str] = None

    @staticmethod
    def make_id(level_set: LevelSet) -> str:
        return (
            f"scn-{level_set.direction.value}-"
            f"{level_set.anchor_low.bar_index}-{level_set.anchor_high.bar_index}"
        )

    @property
    def anchor_high(self) -> Pivot:
        return self.level_set.anchor_high

    @property
    def anchor_low(self) -> Pivot:
        return self.level_set.anchor_low

    @property
    def direction(self) -> Direction:
        return self.level_set.direction

    @property
    def levels(self):
        return self.level_set.levels

    @property
    def style(self) -> StyleKey:
        return StyleKey.BULLISH if self.direction is Direction.UP else StyleKey.BEARISH

    @property
    def is_active(self) -> bool:
        return self.status is ScenarioStatus.ACTIVE

    def is_breached_by(self, close: Decimal) -> bool:
        """True if close lies strictly outside the 0%..100% anchor span."""
        return close > self.anchor_high.price or close < self.anchor_low.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "level_set": self.level_set.to_dict(),
            "wave_number": self.wave_state.wave_number,
            "wave_direction": self.wave_state.direction.value if self.wave_state.direction else None,
            "wave_anchor_pivots": [p.to_dict() for p in self.wave_state.anchor_pivots],
            "wave_labels": [l.to_dict() for l in self.wave_state.labels],
            "activated_at": self.activated_at,
            "status": self.status.value,
            "invalidated_at": self.invalidated_at,
            "invalidation_reason": self.invalidation_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        wave_direction = data.get("wave_direction")
        wave_state = WaveState(
            wave_number=data.get("wave_number", 0),
            direction=Direction(wave_direction) if wave_direction else None,
            anchor_pivots=tuple(Pivot.from_dict(p) for p in data.get("wave_anchor_pivots", [])),
            labels=tuple(WaveLabel.from_dict(l) for l in data.get("wave_labels", [])),
        )
        return cls(
            scenario_id=data["scenario_id"],
            level_set=LevelSet.from_dict(data["level_set"]),
            wave_state=wave_state,
            activated_at=data["activated_at"],
            status=ScenarioStatus(data.get("status", "active")),
            invalidated_at=data.get("invalidated_at"),
            invalidation_reason=data.get("invalidation_reason"),
        )


@dataclass
class LifecycleUpdate:
    """Everything one manager call produced, in emission order."""
    events: List[EngineEvent] = field(default_factory=list)
    draw_events: List[DrawEvent] = field(default_factory=list)
    conditions: List[Condition] = field(default_factory=list)

    def extend(self, other: "LifecycleUpdate") -> None:
        self.events.extend(other.events)
        self.draw_events.extend(other.draw_events)
        self.conditions.extend(other.conditions)


def build_artifact_specs(level_set: LevelSet, wave_state: WaveState) -> List[ArtifactSpec]:
    """
    Artifacts for a scenario, each ranked within its kind.

    Lines: 0% and 100% anchors, retracements, then extensions in
    ascending ratio, so the deepest extension ranks last.
    Boxes: golden pocket, then golden zone.
    Labels: newest wave label first.
    """
    start_bar = min(level_set.anchor_high.bar_index, level_set.anchor_low.bar_index)
    specs: List[ArtifactSpec] = [
        ArtifactSpec(ArtifactKind.LINE, "anchor:0", 0, start_bar,
                     price=level_set.zero_price, text="0"),
        ArtifactSpec(ArtifactKind.LINE, "anchor:1", 1, start_bar,
                     price=level_set.full_price, text="1"),
    ]

    ordered = list(level_set.retracements) + list(level_set.extensions)
    for rank, level in enumerate(ordered, start=2):
        specs.append(ArtifactSpec(
            ArtifactKind.LINE,
            f"level:{level.ratio}",
            rank,
            start_bar,
            price=level.price,
            text=str(level.ratio),
        ))

    for zone in level_set.zones:
        specs.append(ArtifactSpec(
            ArtifactKind.BOX,
            f"zone:{zone.tag.value}",
            _ZONE_PRIORITY[zone.tag],
            start_bar,
            top=zone.top,
            bottom=zone.bottom,
            text=zone.tag.value,
        ))

    labels = wave_state.labels
    for rank, label in enumerate(reversed(labels)):
        specs.append(ArtifactSpec(
            ArtifactKind.LABEL,
            f"wave:{label.key}",
            rank,
            label.bar_index,
            price=label.price,
            text=label.text,
        ))
    return specs


class ScenarioLifecycleManager:
    """
    Sole owner and writer of the Active scenario and its handles.

    Example:
        >>> manager = ScenarioLifecycleManager(EngineConfig.default())
        >>> update = manager.reconcile(level_set, wave_state, bar_index=25)
        >>> manager.active.scenario_id
        'scn-up-10-20'
    """

    def __init__(self, config: EngineConfig, registry: Optional[DrawingRegistry] = None):
        self.config = config
        self.registry = registry or DrawingRegistry.from_config(config)
        self.active: Optional[Scenario] = None
        self.last_invalidated: Optional[Scenario] = None
        self.activated_count = 0
        self.invalidated_count = 0

    def reconcile(
        self,
        level_set: LevelSet,
        wave_state: WaveState,
        bar_index: int,
    ) -> LifecycleUpdate:
        """
        Apply a new anchor pair.

        The current scenario (if any) is invalidated and fully released
        first; a replacement activates only for a usable level set.
        """
        update = LifecycleUpdate()

        if self.active is not None:
            update.extend(self._invalidate(bar_index, REASON_SUPERSEDED))

        if level_set.is_degenerate:
            update.conditions.append(Condition.DEGENERATE_RANGE)
            update.events.append(ConditionEvent(
                bar_index=bar_index,
                scenario_id="",
                condition=Condition.DEGENERATE_RANGE.value,
                detail=(
                    f"high {level_set.anchor_high.price} <= low {level_set.anchor_low.price}"
                ),
            ))
            return update

        if level_set.range <= self.config.min_anchor_range:
            logger.debug(
                f"Pair range {level_set.range} <= min_anchor_range "
                f"{self.config.min_anchor_range}; no scenario at bar {bar_index}"
            )
            return update

        update.extend(self._activate(level_set, wave_state, bar_index))
        return update

    def on_bar(self, bar: Bar) -> LifecycleUpdate:
        """Check the Active scenario against a bar; stretch its artifacts if it survives."""
        update = LifecycleUpdate()
        if self.active is None or not bar.confirmed:
            return update

        if self.active.is_breached_by(bar.close):
            update.extend(self._invalidate(bar.index, REASON_PRICE_BREACH, bar.close))
            return update

        if self.config.extend_artifacts:
            for handle in self.registry.handles_for(self.active.scenario_id):
                if handle.kind is not ArtifactKind.LABEL:
                    update.draw_events.append(self.registry.stretch(handle.handle_id, bar.index))
        return update

    def _activate(
        self,
        level_set: LevelSet,
        wave_state: WaveState,
        bar_index: int,
    ) -> LifecycleUpdate:
        update = LifecycleUpdate()
        scenario = Scenario(
            scenario_id=Scenario.make_id(level_set),
            level_set=level_set,
            wave_state=wave_state,
            activated_at=bar_index,
        )

        specs = build_artifact_specs(level_set, wave_state)
        dropped: List[ArtifactSpec] = []
        for kind in (ArtifactKind.LINE, ArtifactKind.BOX, ArtifactKind.LABEL):
            ranked = sorted((s for s in specs if s.kind is kind), key=lambda s: s.priority)
            room = self.registry.available(kind)
            for spec in ranked[:room]:
                update.draw_events.append(
                    self.registry.create(spec, scenario.scenario_id, scenario.style)
                )
            dropped.extend(ranked[room:])

        if dropped:
            logger.warning(
                f"Artifact ceiling reached for {scenario.scenario_id}: dropped "
                f"{', '.join(s.key for s in dropped)}"
            )
            update.conditions.append(Condition.OBJECT_LIMIT_EXCEEDED)
            update.events.append(ConditionEvent(
                bar_index=bar_index,
                scenario_id=scenario.scenario_id,
                condition=Condition.OBJECT_LIMIT_EXCEEDED.value,
                detail=f"dropped {len(dropped)} artifact(s)",
            ))

        self.active = scenario
        self.activated_count += 1
        handle_count = len(self.registry.handles_for(scenario.scenario_id))
        update.events.append(ScenarioActivatedEvent(
            bar_index=bar_index,
            scenario_id=scenario.scenario_id,
            direction=scenario.direction.value,
            high_bar_index=scenario.anchor_high.bar_index,
            high_price=scenario.anchor_high.price,
            low_bar_index=scenario.anchor_low.bar_index,
            low_price=scenario.anchor_low.price,
            handle_count=handle_count,
        ))
        logger.info(
            f"Scenario {scenario.scenario_id} activated at bar {bar_index} "
            f"({handle_count} artifacts)"
        )
        return update

    def _invalidate(
        self,
        bar_index: int,
        reason: str,
        close_price: Optional[Decimal] = None,
    ) -> LifecycleUpdate:
        update = LifecycleUpdate()
        scenario = self.active
        scenario.status = ScenarioStatus.INVALIDATED
        scenario.invalidated_at = bar_index
        scenario.invalidation_reason = reason

        update.draw_events.extend(self.registry.release_all(scenario.scenario_id))
        if self.registry.handles_for(scenario.scenario_id):
            raise RuntimeError(f"Handles still held by invalidated {scenario.scenario_id}")

        self.active = None
        self.last_invalidated = scenario
        self.invalidated_count += 1
        update.events.append(ScenarioInvalidatedEvent(
            bar_index=bar_index,
            scenario_id=scenario.scenario_id,
            reason=reason,
            close_price=close_price,
            handles_released=len(update.draw_events),
        ))
        logger.info(f"Scenario {scenario.scenario_id} invalidated at bar {bar_index} ({reason})")
        return update

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": self.active.to_dict() if self.active else None,
            "registry": self.registry.to_dict(),
            "activated_count": self.activated_count,
            "invalidated_count": self.invalidated_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config: EngineConfig) -> "ScenarioLifecycleManager":
        registry = DrawingRegistry.from_dict(data["registry"]) if data.get("registry") else None
        manager = cls(config, registry=registry)
        if data.get("active"):
            manager.active = Scenario.from_dict(data["active"])
        manager.activated_count = data.get("activated_count", 0)
        manager.invalidated_count = data.get("invalidated_count", 0)
        return manager
