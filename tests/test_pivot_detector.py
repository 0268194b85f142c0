"""
Tests for the streaming pivot detector.

Covers the confirmation delay, tie-breaking, outside bars, unconfirmed
bars and checkpoint serialization.
"""

import random
from decimal import Decimal

import pytest

from src.fibwave.pivot_detector import PivotDetector, is_swing_high, is_swing_low
from src.fibwave.types import PivotKind

from conftest import make_bar
from helpers import ramp_bars, UP_SWING


def feed(detector, bars):
    """Feed bars and return the pivots emitted, in order."""
    return [p for p in (detector.on_bar(bar) for bar in bars) if p is not None]


class TestSwingPredicates:
    """Test the window predicates on plain sequences."""

    def test_swing_high_center(self):
        highs = [1, 2, 5, 3, 2]
        assert is_swing_high(2, highs, 2)
        assert not is_swing_low(2, highs, 2)

    def test_swing_low_center(self):
        lows = [5, 4, 1, 3, 4]
        assert is_swing_low(2, lows, 2)

    def test_edges_never_qualify(self):
        highs = [9, 1, 1, 1, 1]
        assert not is_swing_high(0, highs, 2)

    def test_tie_resolves_to_earlier_bar(self):
        """Equal highs: the earlier bar wins, the later one is not a pivot."""
        highs = [1, 5, 5, 2, 1]
        assert not is_swing_high(2, highs, 2)
        assert is_swing_high(1, highs, 1)


class TestConfirmationDelay:
    """Pivots are confirmed exactly L bars after the extremum."""

    def test_low_and_high_confirmed_with_delay(self):
        detector = PivotDetector(pivot_length=2)
        bars = ramp_bars(UP_SWING)
        emitted = {}
        for bar in bars:
            pivot = detector.on_bar(bar)
            if pivot:
                emitted[bar.index] = pivot

        assert sorted(emitted) == [12, 22]

        low = emitted[12]
        assert low.kind is PivotKind.LOW
        assert low.bar_index == 10
        assert low.price == Decimal("100")
        assert low.confirmed_at_index == 12

        high = emitted[22]
        assert high.kind is PivotKind.HIGH
        assert high.bar_index == 20
        assert high.price == Decimal("150")
        assert high.confirmed_at_index == high.bar_index + 2

    def test_no_pivot_before_window_full(self):
        """A feed shorter than 2L + 1 bars emits nothing."""
        detector = PivotDetector(pivot_length=2)
        bars = [make_bar(0, 10, 9), make_bar(1, 11, 10), make_bar(2, 15, 14), make_bar(3, 12, 11)]
        assert feed(detector, bars) == []
        assert not detector.has_full_window
        assert detector.bars_in_window == 4

    def test_window_bounded(self):
        detector = PivotDetector(pivot_length=3)
        feed(detector, ramp_bars([(0, 100), (50, 150)]))
        assert detector.bars_in_window == detector.window_size == 7
        assert detector.bars_seen == 51

    def test_invalid_pivot_length(self):
        with pytest.raises(ValueError):
            PivotDetector(pivot_length=0)


class TestUnconfirmedBars:
    """Unconfirmed bars never finalize a pivot."""

    def test_unconfirmed_bar_ignored(self):
        detector = PivotDetector(pivot_length=2)
        bars = ramp_bars(UP_SWING)[:12]
        feed(detector, bars)

        provisional = make_bar(12, 110, 110, 110, confirmed=False)
        assert detector.on_bar(provisional) is None
        assert detector.bars_seen == 12

        pivot = detector.on_bar(make_bar(12, 110, 110, 110))
        assert pivot is not None
        assert pivot.kind is PivotKind.LOW


class TestOutsideBar:
    """A center bar that is both highest and lowest in its window."""

    def test_first_outside_bar_is_high(self):
        detector = PivotDetector(pivot_length=1)
        bars = [make_bar(0, 11, 9), make_bar(1, 20, 1), make_bar(2, 12, 8)]
        pivots = feed(detector, bars)
        assert len(pivots) == 1
        assert pivots[0].kind is PivotKind.HIGH
        assert pivots[0].price == Decimal("20")

    def test_outside_bar_alternates_with_last_pivot(self):
        detector = PivotDetector(pivot_length=1)
        bars = [
            make_bar(0, 10, 9),
            make_bar(1, 15, 12),   # high pivot
            make_bar(2, 13, 11),
            make_bar(3, 30, 1),    # outside bar
            make_bar(4, 14, 10),
        ]
        pivots = feed(detector, bars)
        assert [p.kind for p in pivots] == [PivotKind.HIGH, PivotKind.LOW]
        assert pivots[1].bar_index == 3
        assert pivots[1].price == Decimal("1")


class TestPivotHistory:
    """Recent pivots live in a bounded ring."""

    def test_latest_high_and_low(self):
        detector = PivotDetector(pivot_length=2)
        feed(detector, ramp_bars(UP_SWING))
        assert detector.latest_high.bar_index == 20
        assert detector.latest_low.bar_index == 10
        assert detector.last_pivot.kind is PivotKind.HIGH

    def test_history_capacity(self):
        detector = PivotDetector(pivot_length=1, history=2)
        bars = ramp_bars([(0, 10), (2, 20), (4, 10), (6, 20), (8, 10), (10, 20)])
        pivots = feed(detector, bars)
        assert len(pivots) == 4
        assert len(detector.pivots) == 2
        assert detector.pivots == pivots[-2:]

    def test_latest_survives_run_of_same_kind(self):
        detector = PivotDetector(pivot_length=1, history=2)
        bars = [
            make_bar(0, 10, 8), make_bar(1, 9, 5), make_bar(2, 12, 9),
            make_bar(3, 11, 9), make_bar(4, 14, 10), make_bar(5, 13, 11),
            make_bar(6, 16, 12), make_bar(7, 15, 13),
        ]
        pivots = feed(detector, bars)
        assert [p.kind for p in pivots] == [PivotKind.LOW, PivotKind.HIGH,
                                            PivotKind.HIGH, PivotKind.HIGH]
        assert all(p.kind is PivotKind.HIGH for p in detector.pivots)
        assert detector.latest_low.bar_index == 1
        assert detector.latest_high.bar_index == 6

        restored = PivotDetector.from_dict(detector.to_dict())
        assert restored.latest_low == detector.latest_low
        assert restored.latest_high == detector.latest_high


class TestDetectorSerialization:
    """Detector state round-trips through to_dict / from_dict."""

    def test_restored_detector_continues_identically(self):
        bars = ramp_bars(UP_SWING)
        original = PivotDetector(pivot_length=2)
        feed(original, bars[:20])

        restored = PivotDetector.from_dict(original.to_dict())
        assert feed(restored, bars[20:]) == feed(original, bars[20:])
        assert restored.bars_seen == original.bars_seen


def random_bars(rng, count):
    bars = []
    for i in range(count):
        low = rng.randint(90, 110)
        bars.append(make_bar(i, low + rng.randint(0, 8), low))
    return bars


class TestRandomFeeds:
    """Window properties checked over seeded random feeds."""

    @pytest.mark.parametrize("pivot_length", [1, 2, 3, 5])
    def test_each_pivot_is_extreme_in_its_window(self, pivot_length):
        rng = random.Random(1000 + pivot_length)
        for _ in range(50):
            bars = random_bars(rng, rng.randint(1, 60))
            detector = PivotDetector(pivot_length=pivot_length)
            for bar in bars:
                pivot = detector.on_bar(bar)
                if pivot is None:
                    continue

                i = pivot.bar_index
                assert pivot.confirmed_at_index == i + pivot_length == bar.index
                window = bars[i - pivot_length:i + pivot_length + 1]
                assert len(window) == 2 * pivot_length + 1
                if pivot.kind is PivotKind.HIGH:
                    assert pivot.price == bars[i].high
                    assert all(b.high <= pivot.price for b in window)
                else:
                    assert pivot.price == bars[i].low
                    assert all(b.low >= pivot.price for b in window)

    @pytest.mark.parametrize("pivot_length", [1, 2, 3, 5])
    def test_short_feed_never_emits(self, pivot_length):
        rng = random.Random(2000 + pivot_length)
        for _ in range(50):
            bars = random_bars(rng, rng.randint(0, 2 * pivot_length))
            assert feed(PivotDetector(pivot_length=pivot_length), bars) == []
