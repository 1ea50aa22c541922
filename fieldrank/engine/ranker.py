"""Final ordering of scored players with deterministic tie-breaking."""

from __future__ import annotations

import functools
import logging
from typing import List, Sequence, Tuple

import numpy as np

from ..models.score import PlayerScore

logger = logging.getLogger(__name__)

COMPOSITE_REFINED_WEIGHT = 0.7
COMPOSITE_WAR_WEIGHT = 0.3
CLOSE_SCORE_THRESHOLD = 0.05
SHARED_RANK_WAR_TOLERANCE = 0.01

MAX_EXPECTED_TREND = 0.05
MAX_EXPECTED_STD = 5.0


def composite_score(player: PlayerScore) -> float:
    return COMPOSITE_REFINED_WEIGHT * player.refined_weighted_score + COMPOSITE_WAR_WEIGHT * player.war


def metric_volatility(metrics: Sequence[float], trends: Sequence[float]) -> float:
    """Blend of trend magnitude and metric spread, scaled into [0.1, 0.9]."""
    trend_values = np.asarray([t for t in trends if t is not None], dtype=float)
    metric_values = np.asarray([m for m in metrics if m is not None], dtype=float)
    if trend_values.size == 0 or metric_values.size == 0:
        return 0.5

    magnitude = float(np.abs(trend_values).mean())
    spread = float(metric_values.std())
    norm_trend = min(1.0, magnitude / MAX_EXPECTED_TREND)
    norm_std = min(1.0, spread / MAX_EXPECTED_STD)
    return 0.1 + 0.8 * (0.7 * norm_trend + 0.3 * norm_std)


def confidence_interval(player: PlayerScore) -> Tuple[float, float]:
    """Uncertainty band around the weighted score, wider for thin or volatile data."""
    volatility = metric_volatility(player.metrics, player.trends)
    coverage_uncertainty = max(0.1, 0.5 * (1.0 - player.data_coverage))
    uncertainty = (coverage_uncertainty + volatility) / 2.0
    half_width = uncertainty * abs(player.weighted_score) * 0.5
    return (player.weighted_score - half_width, player.weighted_score + half_width)


def _compare(a: PlayerScore, b: PlayerScore) -> int:
    if a.refined_weighted_score == b.refined_weighted_score:
        if a.war != b.war:
            return -1 if a.war > b.war else 1
    elif abs(a.refined_weighted_score - b.refined_weighted_score) <= CLOSE_SCORE_THRESHOLD:
        if a.composite_score != b.composite_score:
            return -1 if a.composite_score > b.composite_score else 1
    else:
        return -1 if a.refined_weighted_score > b.refined_weighted_score else 1
    if a.id == b.id:
        return 0
    return -1 if a.id < b.id else 1


def rank_players(players: Sequence[PlayerScore]) -> List[PlayerScore]:
    """Sort by refined score and assign ranks.

    Identical refined scores break on WAR; scores within
    ``CLOSE_SCORE_THRESHOLD`` break on the composite score; the competitor id
    settles anything left.  Adjacent players share a rank only when their
    refined scores are identical and their WAR differs by less than
    ``SHARED_RANK_WAR_TOLERANCE``.
    """
    for player in players:
        player.composite_score = composite_score(player)
        player.confidence_interval = confidence_interval(player)

    ordered = sorted(players, key=functools.cmp_to_key(_compare))

    previous = None
    for position, player in enumerate(ordered, start=1):
        if (
            previous is not None
            and player.refined_weighted_score == previous.refined_weighted_score
            and abs(player.war - previous.war) < SHARED_RANK_WAR_TOLERANCE
        ):
            player.rank = previous.rank
        else:
            player.rank = position
        previous = player

    logger.info("Ranked %d players", len(ordered))
    return ordered
