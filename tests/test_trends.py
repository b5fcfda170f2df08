"""Tests for per-universe trend scoring."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from universe_radar.services.stats import stdev
from universe_radar.services.trends import (
    FLAT_BASELINE_EPSILON,
    SnapshotPoint,
    compute_dz,
    compute_trend_score,
    playing_deltas,
)

T0 = datetime(2026, 10, 1, tzinfo=timezone.utc)


def _window(playing, up_votes=None, down_votes=None):
    return [
        SnapshotPoint(
            ts=T0 + timedelta(hours=i),
            playing=value,
            up_votes=up_votes,
            down_votes=down_votes,
        )
        for i, value in enumerate(playing)
    ]


def test_spike_scenario():
    # deltas [10, -5, 35]; baseline [10, -5]
    score = compute_trend_score(_window([100, 110, 105, 140]))

    expected = (35 - 2.5) / stdev([10, -5])
    assert score.dz == pytest.approx(expected)
    assert score.dz > 4
    assert score.acceleration is None
    assert score.rank_bucket is None


def test_single_point_has_no_dz_and_zero_sustain():
    score = compute_trend_score(_window([500], up_votes=10, down_votes=0))

    assert score.dz is None
    assert score.sustain == 0.0
    assert score.wilson == pytest.approx(0.7225, abs=1e-3)


def test_empty_window():
    score = compute_trend_score([])

    assert score.dz is None
    assert score.sustain == 0.0
    assert score.wilson is None


def test_null_playing_breaks_delta_chain():
    window = _window([100, None, 120, 130])

    assert playing_deltas(window) == [10]


def test_all_null_window_has_no_delta():
    score = compute_trend_score(_window([None, None, None]))

    assert score.dz is None
    assert score.sustain == 0.0


def test_one_delta_has_empty_baseline_so_no_dz():
    assert compute_dz([25]) is None


def test_flat_baseline_of_three_gets_epsilon():
    dz = compute_dz([0, 0, 0, 5])

    assert dz is not None
    assert math.isfinite(dz)
    assert dz == pytest.approx(5 / FLAT_BASELINE_EPSILON)


def test_flat_baseline_of_three_without_movement_is_zero():
    assert compute_dz([4, 4, 4, 4]) == 0.0


def test_flat_baseline_of_two_has_no_dz():
    assert compute_dz([0, 0, 5]) is None


def test_baseline_excludes_latest_and_keeps_last_24():
    # Five huge early deltas fall outside the 24-delta baseline.
    alternating = [1, -1] * 12
    deltas = [1000] * 5 + alternating + [3]

    # baseline mean 0, population stdev 1
    assert compute_dz(deltas) == pytest.approx(3.0)


def test_sustain_uses_last_six_deltas():
    # 8 deltas: first two are outliers that must not affect sustain
    window = _window([0, 1000, 0, 10, 20, 30, 40, 50, 60])
    deltas = playing_deltas(window)
    assert len(deltas) == 8

    score = compute_trend_score(window)

    assert score.sustain == pytest.approx(10.0)


def test_sustain_with_fewer_than_six_deltas():
    score = compute_trend_score(_window([10, 20, 40]))

    # ema([10, 20], 6) with k = 2/7
    assert score.sustain == pytest.approx(10 * (5 / 7) + 20 * (2 / 7))


def test_wilson_uses_latest_row_only():
    window = _window([10, 20], up_votes=50, down_votes=5)
    window[-1] = SnapshotPoint(ts=window[-1].ts, playing=20, up_votes=None, down_votes=5)

    assert compute_trend_score(window).wilson is None


def test_wilson_zero_votes_is_zero_not_null():
    score = compute_trend_score(_window([10], up_votes=0, down_votes=0))

    assert score.wilson == 0.0
