"""
Drawable handle registry and render events.

The registry is the only record of what has been handed to the
rendering collaborator. Each handle maps to exactly one rendered
artifact; creating, stretching and releasing a handle each yield one
DrawEvent, so the event stream alone is enough to reproduce the chart.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ObjectLimitExceededError


class ArtifactKind(Enum):
    LINE = "line"
    LABEL = "label"
    BOX = "box"


class DrawAction(Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class StyleKey(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


@dataclass(frozen=True)
class ArtifactSpec:
    """
    A requested artifact, before it is given a handle.

    Attributes:
        kind: LINE, LABEL or BOX.
        key: Stable name within a scenario (e.g. "level:0.618", "zone:golden_pocket").
        priority: Lower value survives first when a ceiling is hit.
        bar_index: Left/anchor bar of the artifact.
        price: Price for lines and labels.
        top: Upper price for boxes.
        bottom: Lower price for boxes.
        text: Label text or level caption.
    """
    kind: ArtifactKind
    key: str
    priority: int
    bar_index: int
    price: Optional[Decimal] = None
    top: Optional[Decimal] = None
    bottom: Optional[Decimal] = None
    text: str = ""


@dataclass(frozen=True)
class DrawEvent:
    """One instruction for the rendering collaborator."""
    action: DrawAction
    kind: ArtifactKind
    handle_id: str
    scenario_id: str
    bar_index: int
    style: StyleKey = StyleKey.NEUTRAL
    price: Optional[Decimal] = None
    top: Optional[Decimal] = None
    bottom: Optional[Decimal] = None
    end_bar_index: Optional[int] = None
    text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "kind": self.kind.value,
            "handle_id": self.handle_id,
            "scenario_id": self.scenario_id,
            "bar_index": self.bar_index,
            "style": self.style.value,
            "price": _dec(self.price),
            "top": _dec(self.top),
            "bottom": _dec(self.bottom),
            "end_bar_index": self.end_bar_index,
            "text": self.text,
        }


@dataclass
class Handle:
    """Opaque reference to one rendered artifact."""
    handle_id: str
    scenario_id: str
    spec: ArtifactSpec
    style: StyleKey
    end_bar_index: Optional[int] = None

    @property
    def kind(self) -> ArtifactKind:
        return self.spec.kind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle_id": self.handle_id,
            "scenario_id": self.scenario_id,
            "style": self.style.value,
            "end_bar_index": self.end_bar_index,
            "spec": {
                "kind": self.spec.kind.value,
                "key": self.spec.key,
                "priority": self.spec.priority,
                "bar_index": self.spec.bar_index,
                "price": _dec(self.spec.price),
                "top": _dec(self.spec.top),
                "bottom": _dec(self.spec.bottom),
                "text": self.spec.text,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Handle":
        spec_data = data["spec"]
        spec = ArtifactSpec(
            kind=ArtifactKind(spec_data["kind"]),
            key=spec_data["key"],
            priority=spec_data["priority"],
            bar_index=spec_data["bar_index"],
            price=Decimal(spec_data["price"]) if spec_data.get("price") is not None else None,
            top=Decimal(spec_data["top"]) if spec_data.get("top") is not None else None,
            bottom=Decimal(spec_data["bottom"]) if spec_data.get("bottom") is not None else None,
            text=spec_data.get("text", ""),
        )
        return cls(
            handle_id=data["handle_id"],
            scenario_id=data["scenario_id"],
            spec=spec,
            style=StyleKey(data["style"]),
            end_bar_index=data.get("end_bar_index"),
        )


class DrawingRegistry:
    """
    Fixed-ceiling store of live handles.

    Handle IDs are sequential per registry, so replaying the same bars
    from the same starting state yields the same IDs.
    """

    def __init__(self, ceilings: Dict[ArtifactKind, int]):
        self.ceilings = dict(ceilings)
        self._handles: Dict[str, Handle] = {}
        self._next_id = 0

    @classmethod
    def from_config(cls, config) -> "DrawingRegistry":
        return cls({
            ArtifactKind.LINE: config.max_lines,
            ArtifactKind.LABEL: config.max_labels,
            ArtifactKind.BOX: config.max_boxes,
        })

    def __len__(self) -> int:
        return len(self._handles)

    def count(self, kind: ArtifactKind) -> int:
        return sum(1 for h in self._handles.values() if h.kind is kind)

    def available(self, kind: ArtifactKind) -> int:
        return max(0, self.ceilings.get(kind, 0) - self.count(kind))

    def handles_for(self, scenario_id: str) -> List[Handle]:
        return [h for h in self._handles.values() if h.scenario_id == scenario_id]

    def get(self, handle_id: str) -> Optional[Handle]:
        return self._handles.get(handle_id)

    def create(self, spec: ArtifactSpec, scenario_id: str, style: StyleKey) -> DrawEvent:
        if self.available(spec.kind) == 0:
            raise ObjectLimitExceededError(
                f"{spec.kind.value} ceiling of {self.ceilings.get(spec.kind, 0)} reached"
            )
        self._next_id += 1
        handle = Handle(
            handle_id=f"{spec.kind.value}-{self._next_id}",
            scenario_id=scenario_id,
            spec=spec,
            style=style,
        )
        self._handles[handle.handle_id] = handle
        return DrawEvent(
            action=DrawAction.CREATE,
            kind=spec.kind,
            handle_id=handle.handle_id,
            scenario_id=scenario_id,
            bar_index=spec.bar_index,
            style=style,
            price=spec.price,
            top=spec.top,
            bottom=spec.bottom,
            text=spec.text,
        )

    def stretch(self, handle_id: str, end_bar_index: int) -> DrawEvent:
        """Extend an artifact's right edge to end_bar_index."""
        handle = self._handles[handle_id]
        handle.end_bar_index = end_bar_index
        return DrawEvent(
            action=DrawAction.UPDATE,
            kind=handle.kind,
            handle_id=handle_id,
            scenario_id=handle.scenario_id,
            bar_index=handle.spec.bar_index,
            style=handle.style,
            price=handle.spec.price,
            top=handle.spec.top,
            bottom=handle.spec.bottom,
            end_bar_index=end_bar_index,
            text=handle.spec.text,
        )

    def release(self, handle_id: str) -> DrawEvent:
        handle = self._handles.pop(handle_id)
        return DrawEvent(
            action=DrawAction.DELETE,
            kind=handle.kind,
            handle_id=handle_id,
            scenario_id=handle.scenario_id,
            bar_index=handle.spec.bar_index,
        )

    def release_all(self, scenario_id: str) -> List[DrawEvent]:
        return [self.release(h.handle_id) for h in self.handles_for(scenario_id)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ceilings": {k.value: v for k, v in self.ceilings.items()},
            "handles": [h.to_dict() for h in self._handles.values()],
            "next_id": self._next_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DrawingRegistry":
        registry = cls({ArtifactKind(k): v for k, v in data.get("ceilings", {}).items()})
        for handle_data in data.get("handles", []):
            handle = Handle.from_dict(handle_data)
            registry._handles[handle.handle_id] = handle
        registry._next_id = data.get("next_id", 0)
        return registry
