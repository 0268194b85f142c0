"""
Tests for the drawable handle registry.
"""

import pytest
from decimal import Decimal

from src.fibwave.drawing import (
    ArtifactKind,
    ArtifactSpec,
    DrawAction,
    DrawingRegistry,
    StyleKey,
)
from src.fibwave.engine_config import EngineConfig
from src.fibwave.errors import ObjectLimitExceededError


def line(key="level:0.5", price="125"):
    return ArtifactSpec(ArtifactKind.LINE, key, 0, 10, price=Decimal(price), text=key)


@pytest.fixture
def registry():
    return DrawingRegistry({ArtifactKind.LINE: 2, ArtifactKind.BOX: 1, ArtifactKind.LABEL: 1})


class TestHandleLifecycle:

    def test_create_update_delete(self, registry):
        created = registry.create(line(), "scn-a", StyleKey.BULLISH)
        assert created.action is DrawAction.CREATE
        assert created.handle_id == "line-1"
        assert created.style is StyleKey.BULLISH

        updated = registry.stretch(created.handle_id, 15)
        assert updated.action is DrawAction.UPDATE
        assert updated.end_bar_index == 15
        assert updated.price == Decimal("125")

        deleted = registry.release(created.handle_id)
        assert deleted.action is DrawAction.DELETE
        assert deleted.style is StyleKey.NEUTRAL
        assert len(registry) == 0

    def test_ceiling_enforced(self, registry):
        registry.create(line("a"), "scn-a", StyleKey.BULLISH)
        registry.create(line("b"), "scn-a", StyleKey.BULLISH)
        assert registry.available(ArtifactKind.LINE) == 0
        with pytest.raises(ObjectLimitExceededError):
            registry.create(line("c"), "scn-a", StyleKey.BULLISH)

    def test_release_all_only_touches_scenario(self, registry):
        registry.create(line("a"), "scn-a", StyleKey.BULLISH)
        registry.create(line("b"), "scn-b", StyleKey.BEARISH)
        events = registry.release_all("scn-a")
        assert [e.scenario_id for e in events] == ["scn-a"]
        assert registry.handles_for("scn-a") == []
        assert len(registry.handles_for("scn-b")) == 1

    def test_from_config(self):
        registry = DrawingRegistry.from_config(EngineConfig.default())
        assert registry.available(ArtifactKind.LINE) == 32
        assert registry.available(ArtifactKind.LABEL) == 20
        assert registry.available(ArtifactKind.BOX) == 4


class TestRegistrySerialization:

    def test_roundtrip_keeps_ids_sequential(self, registry):
        registry.create(line("a"), "scn-a", StyleKey.BULLISH)
        restored = DrawingRegistry.from_dict(registry.to_dict())
        created = restored.create(line("b"), "scn-a", StyleKey.BULLISH)
        assert created.handle_id == "line-2"
        assert restored.get("line-1").spec == registry.get("line-1").spec
