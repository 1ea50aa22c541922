"""Recent-form trend estimation over general historical rounds."""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np
import pandas as pd

from ..metrics import ROUND_METRIC_COUNT, ROUND_METRICS, SCORING_AVERAGE_KEY, canonical_name, is_lower_better
from ..models.records import PlayerRecord
from .composite import MetricVector

logger = logging.getLogger(__name__)

TREND_WINDOW_ROUNDS = 24
MIN_TREND_ROUNDS = 15
MIN_METRIC_VALUES = 10
SMOOTHING_WINDOW = 3
SLOPE_THRESHOLD = 0.005
TREND_DECIMALS = 3


def smooth_values(values: Sequence[float], window: int = SMOOTHING_WINDOW) -> np.ndarray:
    """Centered moving average; the window shrinks at both ends."""
    series = pd.Series(values, dtype=float)
    return series.rolling(window, center=True, min_periods=1).mean().to_numpy()


def weighted_slope(values: Sequence[float], decay: float = 0.2) -> float:
    """Weighted least-squares slope over ``x = 1..N`` with weights ``exp(-decay*(N-x))``.

    Later points (the most recent rounds) carry the most weight.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 2:
        return 0.0
    x = np.arange(1, n + 1, dtype=float)
    w = np.exp(-decay * (n - x))
    x_mean = np.dot(w, x) / w.sum()
    y_mean = np.dot(w, y) / w.sum()
    denom = np.dot(w, (x - x_mean) ** 2)
    if denom == 0:
        return 0.0
    return float(np.dot(w, (x - x_mean) * (y - y_mean)) / denom)


def calculate_metric_trends(player: PlayerRecord, decay: float = 0.2) -> List[float]:
    """Per-round-metric trend slopes (16 values, zeros when data is too thin)."""
    recent = [
        r for r in player.historical_rounds[:TREND_WINDOW_ROUNDS]
        if r.value(SCORING_AVERAGE_KEY) is not None
    ]
    if len(recent) < MIN_TREND_ROUNDS:
        logger.debug("Player %s: %d scored rounds, trends skipped", player.id, len(recent))
        return [0.0] * ROUND_METRIC_COUNT

    chronological = list(reversed(recent))
    trends: List[float] = []
    for _, key in ROUND_METRICS:
        values = [r.value(key) for r in chronological if r.value(key) is not None]
        if len(values) < MIN_METRIC_VALUES:
            trends.append(0.0)
            continue
        slope = weighted_slope(smooth_values(values), decay)
        if abs(slope) <= SLOPE_THRESHOLD:
            slope = 0.0
        trends.append(round(slope, TREND_DECIMALS))
    return trends


def apply_trends(vector: MetricVector, trends: Sequence[float], trend_weight: float = 0.30) -> MetricVector:
    """Nudge each round metric by ``trend * trend_weight`` toward its better direction.

    ``trends`` are in pre-BCC order; the vector's remap places each one on the
    right post-BCC slot.
    """
    values = list(vector.values)
    for pre_index, trend in enumerate(trends):
        if not trend:
            continue
        index = vector.remap[pre_index]
        adjustment = trend * trend_weight
        if is_lower_better(canonical_name(index)):
            adjustment = -adjustment
        values[index] += adjustment
    return vector.with_values(values)
