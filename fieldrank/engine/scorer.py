"""Per-player scoring: z-scores, coverage tiers, past performance and WAR."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import MetricGroup, PastPerformanceConfig, RankingConfig
from ..metrics import canonical_name, is_lower_better, is_scoring_related
from ..models.records import EventRecord, PlayerRecord
from ..models.score import PlayerScore
from .averages import HistoricalAverages
from .composite import MetricVector
from .group_stats import GroupStats, transform_value

logger = logging.getLogger(__name__)

RECENT_EVENT_WINDOW = 10
LOW_CONFIDENCE_CAP = 0.15
CAPPED_PAST_PERFORMANCE = 0.3
CAP_CONFIDENCE_THRESHOLD = 0.85
DAMPENING_EXPONENT = 0.35

# Baseline scores substituted for sparse players, by recent form.
BASELINE_NO_EVENTS = 0.20
BASELINE_NO_TOP20 = 0.30
BASELINE_TOP20 = 0.75
BASELINE_TOP10 = 1.20

PAST_PERF_MIN = 0.3
PAST_PERF_MAX = 3.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def coverage_confidence(coverage: float) -> float:
    """``0.5 + 0.5*sqrt(coverage)``, coverage clamped to [0, 1]."""
    return 0.5 + 0.5 * math.sqrt(min(max(coverage, 0.0), 1.0))


def scoring_penalty(metric_name: str, z: float) -> float:
    """Superlinear stretch of extreme z-scores on scoring-type metrics."""
    if is_scoring_related(metric_name) and abs(z) > 2:
        return z * (abs(z) / 2) ** 0.75
    return z


def recent_finishes(player: PlayerRecord, current_event_id: Optional[str]) -> List[EventRecord]:
    """Up to ``RECENT_EVENT_WINDOW`` newest non-current events with a real finish."""
    finished = [e for e in player.events_newest_first(current_event_id) if e.made_finish]
    return finished[:RECENT_EVENT_WINDOW]


def baseline_score(player: PlayerRecord, current_event_id: Optional[str]) -> float:
    """Replacement score for players whose stats are too sparse to trust."""
    recent = recent_finishes(player, current_event_id)
    if not recent:
        return BASELINE_NO_EVENTS
    if any(e.position <= 10 for e in recent):
        return BASELINE_TOP10
    if any(e.position <= 20 for e in recent):
        return BASELINE_TOP20
    return BASELINE_NO_TOP20


def has_recent_top10(player: PlayerRecord, current_event_id: Optional[str]) -> bool:
    return any(e.position <= 10 for e in recent_finishes(player, current_event_id))


def latest_event_top10(player: PlayerRecord, current_event_id: Optional[str]) -> bool:
    """Whether the newest non-current event, missed cut or not, was a top-10."""
    events = player.events_newest_first(current_event_id)
    if not events:
        return False
    position = events[0].position
    return position is not None and 0 < position <= 10


def position_score(position: Optional[int]) -> float:
    if position is None or position <= 0:
        return -0.2
    if position == 1:
        return 1.5
    if position <= 3:
        return 1.2
    if position <= 5:
        return 1.0
    if position <= 10:
        return 0.8
    if position <= 25:
        return 0.4
    if position <= 50:
        return 0.1
    return -0.2


def past_performance_multiplier(player: PlayerRecord, config: PastPerformanceConfig) -> float:
    """Recency-weighted finish history converted into a score multiplier.

    Every non-current event counts (missed cuts and unknown finishes score
    -0.2); the most recent has weight 1 and each older one half the previous.
    """
    if not config.enabled:
        return 1.0
    events = player.events_newest_first(config.current_event_id)
    if not events:
        return 1.0

    total = 0.0
    weight_sum = 0.0
    for i, event in enumerate(events):
        weight = 0.5 ** i
        total += weight * position_score(event.position)
        weight_sum += weight
    avg = total / weight_sum

    if avg <= 0:
        raw = 0.85 + 1.25 * avg
    else:
        raw = 1.0 + 1.8 * avg ** 1.2
    raw = min(max(raw, PAST_PERF_MIN), PAST_PERF_MAX)

    influence = min(max(config.weight, 0.0), 1.0)
    return 1.0 + (raw - 1.0) * influence


def calculate_war(groups: Sequence[MetricGroup], z_scores: Dict[Tuple[str, str], float]) -> float:
    """Log-compressed, weight-scaled sum of per-metric z-scores."""
    kpis = []
    for group in groups:
        for spec in group.metrics:
            key = (group.name, spec.name)
            if key in z_scores:
                kpis.append((group.weight * spec.weight, z_scores[key]))
    total = sum(w for w, _ in kpis)
    if total <= 0:
        return 0.0
    war = 0.0
    for weight, z in kpis:
        sign = 1.0 if z > 0 else (-1.0 if z < 0 else 0.0)
        war += (weight / total) * sign * math.log1p(abs(z))
    return war


def _tier_ceiling(coverage: float, high: float, mid: float, low: float) -> float:
    if coverage < 0.55:
        return low
    if coverage < 0.60:
        return mid
    return high


def coverage_multiplier(coverage: float) -> float:
    """Scaling multiplier for the well-covered tier (coverage >= 0.70)."""
    if coverage < 0.85:
        return 0.49 + ((coverage - 0.70) / 0.15) * 0.46
    return 0.95 + ((min(coverage, 1.0) - 0.85) / 0.15) * 0.05


def _finite(value: float, label: str, player_id: str) -> float:
    if value is None or not math.isfinite(value):
        logger.error("Non-finite %s for player %s; using 0", label, player_id)
        return 0.0
    return value


@dataclass
class _Evaluation:
    z_scores: Dict[Tuple[str, str], float]
    slots: int
    slots_with_data: int


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class Scorer:
    """Turn a player's metric vector into a ``PlayerScore`` against field stats."""

    def __init__(self, config: RankingConfig, group_stats: GroupStats):
        self.config = config
        self.groups = config.groups
        self.group_stats = group_stats

    def _evaluate(self, vector: MetricVector) -> _Evaluation:
        z_scores: Dict[Tuple[str, str], float] = {}
        slots = 0
        with_data = 0
        for group in self.groups:
            stats_for_group = self.group_stats.get(group.name, {})
            for spec in group.metrics:
                slots += 1
                if vector.has_data[spec.index]:
                    with_data += 1
                stats = stats_for_group.get(spec.name)
                if stats is None:
                    continue
                name = canonical_name(spec.index)
                raw = vector.values[spec.index]
                if not math.isfinite(raw) or (raw == 0 and is_lower_better(name)):
                    z = 0.0
                else:
                    z = stats.z_score(transform_value(name, raw))
                z_scores[(group.name, spec.name)] = scoring_penalty(name, z)
        return _Evaluation(z_scores, slots, with_data)

    def _group_scores(self, z_scores: Dict[Tuple[str, str], float], factor: float = 1.0) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        for group in self.groups:
            total = 0.0
            weight_sum = 0.0
            for spec in group.metrics:
                z = z_scores.get((group.name, spec.name))
                if z is None or spec.weight <= 0:
                    continue
                total += spec.weight * z * factor
                weight_sum += spec.weight
            if weight_sum > 0:
                scores[group.name] = total / weight_sum
        return scores

    def _weighted(self, group_scores: Dict[str, float]) -> float:
        total = 0.0
        weight_sum = 0.0
        for group in self.groups:
            if group.name in group_scores and group.weight > 0:
                total += group.weight * group_scores[group.name]
                weight_sum += group.weight
        return total / weight_sum if weight_sum > 0 else 0.0

    def score(
        self,
        player: PlayerRecord,
        vector: MetricVector,
        trends: Sequence[float] = (),
        averages: Optional[HistoricalAverages] = None,
    ) -> PlayerScore:
        evaluation = self._evaluate(vector)
        coverage = evaluation.slots_with_data / evaluation.slots if evaluation.slots else 0.5
        confidence = coverage_confidence(coverage)

        current_event = self.config.current_event_id
        baseline = baseline_score(player, current_event)
        recent_top10 = has_recent_top10(player, current_event)

        undampened = self._group_scores(evaluation.z_scores)
        dampened: Optional[Dict[str, float]] = None
        low_confidence = False

        if self.config.apply_coverage_dampening and coverage < 0.70:
            dampened = self._group_scores(evaluation.z_scores, coverage ** DAMPENING_EXPONENT)
            weighted = self._weighted(dampened)
            calculated = weighted * confidence * coverage
            if coverage < 0.50:
                refined = baseline
                low_confidence = True
            elif not latest_event_top10(player, current_event):
                ceiling = _tier_ceiling(coverage, 1.15, 1.05, 0.95)
                refined = max(min(calculated, ceiling), baseline)
                low_confidence = True
            else:
                ceiling = _tier_ceiling(coverage, 1.20, 1.10, 1.00)
                refined = min(calculated, ceiling)
        elif self.config.apply_coverage_dampening:
            weighted = self._weighted(undampened)
            refined = weighted * confidence * coverage_multiplier(coverage)
        else:
            weighted = self._weighted(undampened)
            refined = weighted * confidence

        multiplier = past_performance_multiplier(player, self.config.past_performance)
        if confidence < CAP_CONFIDENCE_THRESHOLD and not recent_top10 and not low_confidence:
            refined = min(refined, LOW_CONFIDENCE_CAP)
            if self.config.past_performance.enabled:
                multiplier = min(multiplier, CAPPED_PAST_PERFORMANCE)

        weighted = _finite(weighted, "weighted score", player.id)
        refined = _finite(refined, "refined score", player.id)
        multiplier = _finite(multiplier, "past performance multiplier", player.id)
        war = _finite(calculate_war(self.groups, evaluation.z_scores), "WAR", player.id)
        final = _finite(refined * multiplier, "final score", player.id)

        finishes = [e.position for e in player.events.values() if e.made_finish]
        logger.debug(
            "Player %s: coverage=%.3f confidence=%.3f weighted=%.3f refined=%.3f",
            player.id, coverage, confidence, weighted, refined,
        )

        return PlayerScore(
            id=player.id,
            name=player.name,
            group_scores=dict(dampened if dampened is not None else undampened),
            weighted_score=weighted,
            refined_weighted_score=refined,
            past_performance_multiplier=multiplier,
            final_score=final,
            war=war,
            data_coverage=coverage,
            confidence_factor=confidence,
            trends=list(trends),
            metrics=list(vector.values),
            top5=sum(1 for p in finishes if p <= 5),
            top10=sum(1 for p in finishes if p <= 10),
            is_low_confidence=low_confidence,
            baseline_score=baseline,
            has_recent_top10=recent_top10,
            group_scores_before_dampening=undampened,
            group_scores_after_dampening=dampened,
            metric_sources=averages.source_map() if averages is not None else {},
            low_data_metrics=list(averages.low_data) if averages is not None else [],
        )
