"""Tests for the numeric helpers behind trend scoring."""

import math

import pytest

from universe_radar.services.stats import ema, mean, stdev, wilson_score


def test_mean_empty_is_zero():
    assert mean([]) == 0.0


def test_mean_basic():
    assert mean([1, 2, 3, 4]) == 2.5


@pytest.mark.parametrize("values", [[], [5], [1, 1, 1]])
def test_stdev_degenerate_inputs_are_zero(values):
    assert stdev(values) == 0.0


def test_stdev_is_population_not_sample():
    # Population: sqrt(((10-2.5)^2 + (-5-2.5)^2) / 2) = 7.5
    # (sample stdev would be ~10.61)
    assert stdev([10, -5]) == pytest.approx(7.5)


def test_ema_empty_is_zero():
    assert ema([], 6) == 0.0


@pytest.mark.parametrize("span", [1, 2, 6, 24])
def test_ema_single_value_is_that_value(span):
    assert ema([42.5], span) == 42.5


def test_ema_matches_recurrence():
    # k = 2/3: 1 -> 1/3 + 4/3 = 5/3 -> 5/9 + 2 = 23/9
    assert ema([1, 2, 3], 2) == pytest.approx(23 / 9)


def test_ema_is_order_dependent():
    assert ema([1, 2, 3], 6) != ema([3, 2, 1], 6)


def test_wilson_no_votes_is_zero():
    assert wilson_score(0, 0) == 0.0


def test_wilson_small_perfect_sample_is_bounded():
    score = wilson_score(10, 0)
    assert score == pytest.approx(0.7225, abs=1e-3)
    assert score < 1.0


def test_wilson_grows_with_sample_size():
    assert wilson_score(100, 0) > wilson_score(10, 0)


def test_wilson_matches_closed_form():
    up, down, z = 80, 20, 1.96
    n = up + down
    p = up / n
    expected = (p + z * z / (2 * n) - z * math.sqrt((p * (1 - p) + z * z / (4 * n)) / n)) / (
        1 + z * z / n
    )
    assert wilson_score(up, down) == pytest.approx(expected, rel=1e-12)


def test_wilson_all_downvotes_is_zero():
    assert wilson_score(0, 25) == pytest.approx(0.0, abs=1e-12)


def test_wilson_custom_z_is_looser_than_default():
    assert wilson_score(10, 5, z=1.0) > wilson_score(10, 5)
