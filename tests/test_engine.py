"""
End-to-end tests for FibWaveEngine: control flow, ordering, determinism
and checkpoint restore.
"""

import json
from decimal import Decimal

import pytest

from src.fibwave.drawing import DrawAction
from src.fibwave.engine import FibWaveEngine, replay
from src.fibwave.errors import BarOrderError, Condition
from src.fibwave.fib_levels import ZoneTag
from src.fibwave.scenario_manager import ScenarioStatus
from src.fibwave.state import EngineState
from src.fibwave.types import Direction, PivotKind

from conftest import make_bar
from helpers import (
    UP_SWING,
    UP_SWING_THEN_HIGHER_LOW,
    batch_process_bars,
    event_types,
    ramp_bars,
)


class TestEndToEnd:
    """Low 100 @ 10, High 150 @ 20 with pivot_length=2."""

    def test_scenario_activates_on_high_confirmation(self, small_config):
        engine, results = batch_process_bars(ramp_bars(UP_SWING), small_config)

        assert results[12].pivot.kind is PivotKind.LOW
        assert results[12].level_set is None
        assert engine.active_scenario.scenario_id == "scn-up-10-20"

        activation = results[22]
        assert event_types(activation) == [
            "PIVOT_CONFIRMED",
            "LEVELS_RECOMPUTED",
            "WAVE_UPDATED",
            "SCENARIO_ACTIVATED",
        ]
        level_set = activation.level_set
        assert level_set.direction is Direction.UP
        assert level_set.level("0.618").price == Decimal("119.1")
        assert level_set.price_at("0.65") == Decimal("117.5")
        assert level_set.level("1.618").price == Decimal("180.9")
        assert level_set.zone(ZoneTag.GOLDEN_POCKET).bottom == Decimal("117.5")
        assert activation.wave_state.wave_number == 2

    def test_draw_events_on_activation_bar(self, small_config):
        _, results = batch_process_bars(ramp_bars(UP_SWING), small_config)
        actions = [d.action for d in results[22].draw_events]
        assert actions.count(DrawAction.CREATE) == 20
        assert actions.count(DrawAction.UPDATE) == 18
        assert actions.index(DrawAction.UPDATE) > max(
            i for i, a in enumerate(actions) if a is DrawAction.CREATE
        )

    def test_later_bars_stretch_artifacts(self, small_config):
        _, results = batch_process_bars(ramp_bars(UP_SWING), small_config)
        for result in results[23:]:
            assert len(result.draw_events) == 18
            assert all(d.end_bar_index == result.bar_index for d in result.draw_events)

    def test_no_scenario_before_pair(self, small_config):
        _, results = batch_process_bars(ramp_bars(UP_SWING), small_config)
        for result in results[:22]:
            assert not result.signal("scenario_active")
            assert result.draw_events == []


class TestSupersede:
    """A new pivot pair replaces the scenario in one transition."""

    def test_higher_low_flips_to_down_scenario(self, small_config):
        engine, results = batch_process_bars(ramp_bars(UP_SWING_THEN_HIGHER_LOW), small_config)

        result = results[28]
        assert result.pivot.kind is PivotKind.LOW
        assert result.pivot.bar_index == 26
        assert event_types(result) == [
            "PIVOT_CONFIRMED",
            "LEVELS_RECOMPUTED",
            "WAVE_UPDATED",
            "SCENARIO_INVALIDATED",
            "SCENARIO_ACTIVATED",
        ]
        assert result.wave_state.wave_number == 3

        actions = [d.action for d in result.draw_events]
        assert actions[:20] == [DrawAction.DELETE] * 20
        assert actions[20:41] == [DrawAction.CREATE] * 21

        scenario = engine.active_scenario
        assert scenario.scenario_id == "scn-down-26-20"
        assert scenario.direction is Direction.DOWN
        assert engine.manager.last_invalidated.scenario_id == "scn-up-10-20"
        assert engine.manager.last_invalidated.status is ScenarioStatus.INVALIDATED

    @pytest.mark.parametrize("pivot_history", [2, 8])
    def test_higher_high_supersedes_with_short_history(self, small_config, pivot_history):
        """Low @ 2, High 130 @ 5, then High 135 @ 8: the new high re-anchors the scenario."""
        config = small_config.with_overrides(pivot_history=pivot_history)
        rows = [
            (110, 104), (112, 102), (108, 100), (115, 101), (120, 102), (130, 103),
            (125, 104), (128, 105), (135, 106), (131, 107), (132, 108), (133, 109),
        ]
        bars = [make_bar(i, high, low) for i, (high, low) in enumerate(rows)]
        engine, results = batch_process_bars(bars, config)

        assert results[7].pivot.kind is PivotKind.HIGH
        assert "SCENARIO_ACTIVATED" in event_types(results[7])

        result = results[10]
        assert result.pivot.bar_index == 8
        assert result.level_set is not None
        assert "SCENARIO_INVALIDATED" in event_types(result)
        assert engine.detector.latest_low.bar_index == 2
        assert engine.active_scenario.scenario_id == "scn-up-2-8"
        assert engine.manager.last_invalidated.scenario_id == "scn-up-2-5"

    def test_at_most_one_active_scenario(self, small_config):
        engine, _ = batch_process_bars(ramp_bars(UP_SWING_THEN_HIGHER_LOW), small_config)
        scenario_ids = {h.scenario_id for h in engine.registry._handles.values()}
        assert scenario_ids == {engine.active_scenario.scenario_id}


class TestPriceBreach:

    def test_breach_releases_everything(self, small_config):
        bars = ramp_bars(UP_SWING)[:23] + [make_bar(23, 152, 146, 151)]
        engine, results = batch_process_bars(bars, small_config)

        result = results[23]
        assert engine.active_scenario is None
        assert len(engine.registry) == 0
        assert [d.action for d in result.draw_events] == [DrawAction.DELETE] * 20
        assert "SCENARIO_INVALIDATED" in event_types(result)
        assert result.signal("cross_0")
        assert not result.signal("scenario_active")


class TestAlertsEveryBar:
    """Signals are recomputed on every bar, not only the newest."""

    def test_touch_and_cross_618(self, small_config):
        bars = ramp_bars(UP_SWING)[:23] + [
            make_bar(23, 141, 139, 140),
            make_bar(24, 130, 120, 121),
            make_bar(25, 122, 117, 118),
            make_bar(26, 125, 118, 124),
        ]
        _, results = batch_process_bars(bars, small_config)

        assert not results[24].signal("golden_pocket_touch")
        assert results[25].signal("golden_pocket_touch")
        assert results[25].signal("cross_618")
        # Back up through 0.618 on the next bar
        assert results[26].signal("cross_618")
        assert results[26].signal("golden_pocket_touch")
        assert all(len(r.signals) == 6 for r in results)


class TestInsufficientHistory:

    def test_reported_until_window_full(self, small_config):
        _, results = batch_process_bars(ramp_bars(UP_SWING)[:6], small_config)
        for result in results[:4]:
            assert Condition.INSUFFICIENT_HISTORY in result.conditions
        assert Condition.INSUFFICIENT_HISTORY not in results[4].conditions

    def test_short_feed_emits_nothing(self, small_config):
        engine, results = batch_process_bars(ramp_bars(UP_SWING)[:4], small_config)
        assert all(r.pivot is None for r in results)
        assert engine.active_scenario is None


class TestBarOrder:
    """Out-of-order bars are fatal and leave state untouched."""

    def test_repeated_confirmed_index_raises(self, small_config):
        bars = ramp_bars(UP_SWING)
        engine = FibWaveEngine(small_config)
        for bar in bars[:15]:
            engine.process_bar(bar)
        before = json.dumps(engine.get_state().to_dict(), sort_keys=True)

        with pytest.raises(BarOrderError) as exc_info:
            engine.process_bar(bars[14])
        assert exc_info.value.bar_index == 14
        assert exc_info.value.last_index == 14

        assert json.dumps(engine.get_state().to_dict(), sort_keys=True) == before
        engine.process_bar(bars[15])

    def test_unconfirmed_bar_may_repeat(self, small_config):
        engine = FibWaveEngine(small_config)
        engine.process_bar(make_bar(0, 10, 9))
        engine.process_bar(make_bar(1, 11, 10, confirmed=False))
        engine.process_bar(make_bar(1, 12, 10, confirmed=False))
        engine.process_bar(make_bar(1, 12, 10))
        with pytest.raises(BarOrderError):
            engine.process_bar(make_bar(1, 12, 10, confirmed=False))

    def test_bar_behind_pending_raises(self, small_config):
        engine = FibWaveEngine(small_config)
        engine.process_bar(make_bar(0, 10, 9))
        engine.process_bar(make_bar(3, 11, 10, confirmed=False))
        with pytest.raises(BarOrderError):
            engine.process_bar(make_bar(2, 11, 10))


class TestDeterminism:
    """Batch and incremental runs produce identical output."""

    def test_batch_equals_incremental(self, small_config):
        bars = ramp_bars(UP_SWING_THEN_HIGHER_LOW)
        _, batch = replay(bars, small_config)
        _, incremental = batch_process_bars(bars, small_config)
        assert [r.to_dict() for r in batch] == [r.to_dict() for r in incremental]

    def test_repeat_runs_identical(self, small_config):
        bars = ramp_bars(UP_SWING_THEN_HIGHER_LOW)
        _, first = replay(bars, small_config)
        _, second = replay(bars, small_config)
        assert [r.signals for r in first] == [r.signals for r in second]

    def test_progress_callback(self, small_config):
        seen = []
        bars = ramp_bars(UP_SWING)
        replay(bars, small_config, progress_callback=lambda i, n: seen.append((i, n)))
        assert seen[0] == (1, len(bars))
        assert seen[-1] == (len(bars), len(bars))


class TestCheckpoint:
    """A restored engine continues exactly like the original."""

    @pytest.mark.parametrize("split", [5, 15, 24, 27])
    def test_restore_mid_replay(self, small_config, split):
        bars = ramp_bars(UP_SWING_THEN_HIGHER_LOW)
        _, uninterrupted = replay(bars, small_config)

        first, _ = replay(bars[:split], small_config)
        payload = json.loads(json.dumps(first.get_state().to_dict()))
        resumed = FibWaveEngine.from_state(EngineState.from_dict(payload))
        tail = resumed.replay(bars[split:])

        assert [r.to_dict() for r in tail] == [r.to_dict() for r in uninterrupted[split:]]

    def test_state_rejects_unknown_version(self, small_config):
        data = FibWaveEngine(small_config).get_state().to_dict()
        data["version"] = 99
        with pytest.raises(ValueError):
            EngineState.from_dict(data)
