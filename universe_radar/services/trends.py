"""Hourly trend scoring for a single universe.

Turns a chronological window of hourly snapshots into three signals:

  dz       -- z-score of the latest 1h playing delta against the previous
              (up to) 24 deltas
  sustain  -- 6-span EMA of the last 6 deltas; positive while growth holds
  wilson   -- Wilson lower bound of the latest up/down vote counts

Null playing counts break the delta chain: a pair with a null on either
side yields no delta at all (not a zero), so the delta sequence is sparse.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from universe_radar.services.stats import ema, mean, stdev, wilson_score

# Number of prior deltas used as the z-score baseline
BASELINE_DELTAS = 24
# Span (and number of trailing deltas) for the sustain EMA
SUSTAIN_SPAN = 6
# A flat baseline with at least this many deltas gets an epsilon stdev
MIN_FLAT_BASELINE = 3
FLAT_BASELINE_EPSILON = 1e-6


@dataclass(frozen=True)
class SnapshotPoint:
    ts: datetime
    playing: Optional[int]
    up_votes: Optional[int]
    down_votes: Optional[int]


@dataclass(frozen=True)
class TrendScore:
    dz: Optional[float]
    acceleration: Optional[float]
    sustain: Optional[float]
    wilson: Optional[float]
    rank_bucket: Optional[int]


def playing_deltas(window: Sequence[SnapshotPoint]) -> list[int]:
    """First differences of playing counts, skipping pairs with a null side."""
    deltas: list[int] = []
    for prev, cur in zip(window, window[1:]):
        if prev.playing is not None and cur.playing is not None:
            deltas.append(cur.playing - prev.playing)
    return deltas


def compute_dz(deltas: Sequence[float]) -> Optional[float]:
    """Standardize the latest delta against the deltas before it.

    The baseline excludes the latest delta so a spike cannot dampen its own
    score. When the baseline is perfectly flat but has at least three
    entries, stdev is forced to a tiny epsilon: the first movement after a
    flat stretch then reports a very large |dz| instead of None.
    """
    if not deltas:
        return None
    delta_1h = deltas[-1]
    end = len(deltas) - 1
    baseline = deltas[max(0, end - BASELINE_DELTAS):end]

    m = mean(baseline)
    s = stdev(baseline)
    if s == 0 and len(baseline) >= MIN_FLAT_BASELINE:
        s = FLAT_BASELINE_EPSILON

    if s > 0:
        return (delta_1h - m) / s
    return None


def compute_trend_score(window: Sequence[SnapshotPoint]) -> TrendScore:
    """Score one universe from its trailing window (oldest first)."""
    deltas = playing_deltas(window)

    dz = compute_dz(deltas)
    sustain = ema(deltas[-SUSTAIN_SPAN:], SUSTAIN_SPAN)

    wilson = None
    if window:
        latest = window[-1]
        if latest.up_votes is not None and latest.down_votes is not None:
            wilson = wilson_score(latest.up_votes, latest.down_votes)

    return TrendScore(
        dz=dz,
        acceleration=None,
        sustain=sustain,
        wilson=wilson,
        rank_bucket=None,
    )
