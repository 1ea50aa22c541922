"""Recency-weighted historical averages blended across round buckets."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..metrics import PUTTING_ROUND_KEYS, ROUND_METRICS
from ..models.records import PlayerRecord, RoundRecord

logger = logging.getLogger(__name__)

# Pooled fallbacks backed by fewer rounds than this are reported as low-data.
LOW_DATA_ROUNDS = 8

SOURCE_HISTORICAL = "historical"
SOURCE_SIMILAR = "similar"
SOURCE_SPECIALIZED = "specialized"
SOURCE_BLENDED = "blended"
SOURCE_POOLED = "pooled"
SOURCE_MISSING = "missing"


def exponential_weighted_average(values: Sequence[float], decay: float = 0.2) -> Optional[float]:
    """Weighted mean with weights ``exp(-decay * i)``; ``values[0]`` is the newest."""
    if len(values) == 0:
        return None
    arr = np.asarray(values, dtype=float)
    weights = np.exp(-decay * np.arange(len(arr)))
    return float(np.dot(weights, arr) / weights.sum())


def calculate_dynamic_weight(base_weight: float, sample_count: int, min_samples: int, plenty_samples: int = 20) -> float:
    """Scale a context weight by how much context data backs it.

    80% of ``base_weight`` at or below ``min_samples``, the full weight at or
    above ``plenty_samples``, linear in between.
    """
    if sample_count <= min_samples:
        return 0.8 * base_weight
    if sample_count >= plenty_samples:
        return base_weight
    progress = (sample_count - min_samples) / float(plenty_samples - min_samples)
    return base_weight * (0.8 + 0.2 * progress)


def _valid_values(rounds: Sequence[RoundRecord], key: str) -> List[float]:
    values = []
    for record in rounds:
        value = record.value(key)
        if value is None or not isinstance(value, (int, float)) or not math.isfinite(value):
            continue
        values.append(float(value))
    return values


@dataclass
class HistoricalAverages:
    """Blended round-metric averages for one player, in round-metric order."""

    values: List[float]
    sources: List[str]
    counts: List[Dict[str, int]]
    low_data: List[str] = field(default_factory=list)

    @property
    def has_data(self) -> List[bool]:
        return [src != SOURCE_MISSING and value != 0 for value, src in zip(self.values, self.sources)]

    def source_map(self) -> Dict[str, str]:
        return {name: src for (name, _), src in zip(ROUND_METRICS, self.sources)}


class HistoricalAverager:
    """Blend historical, similar-course and specialized (putting) rounds per metric."""

    def __init__(
        self,
        similar_weight: float = 0.6,
        specialized_weight: float = 0.7,
        decay: float = 0.2,
        min_samples: int = 2,
        plenty_samples: int = 20,
    ):
        self.similar_weight = similar_weight
        self.specialized_weight = specialized_weight
        self.decay = decay
        self.min_samples = min_samples
        self.plenty_samples = plenty_samples

    def _bucket_average(self, values: List[float]) -> Optional[float]:
        if len(values) < self.min_samples:
            return None
        return exponential_weighted_average(values, self.decay)

    def _blend(self, context_avg: float, context_n: int, base_weight: float, hist_avg: Optional[float]) -> float:
        if hist_avg is None:
            return context_avg
        weight = calculate_dynamic_weight(base_weight, context_n, self.min_samples, self.plenty_samples)
        return weight * context_avg + (1.0 - weight) * hist_avg

    def average(self, player: PlayerRecord) -> HistoricalAverages:
        values: List[float] = []
        sources: List[str] = []
        counts: List[Dict[str, int]] = []
        low_data: List[str] = []
        pooled_rounds: Optional[List[RoundRecord]] = None

        for name, key in ROUND_METRICS:
            hist = _valid_values(player.historical_rounds, key)
            similar = _valid_values(player.similar_rounds, key)
            specialized = _valid_values(player.specialized_rounds, key)
            counts.append({
                SOURCE_HISTORICAL: len(hist),
                SOURCE_SIMILAR: len(similar),
                SOURCE_SPECIALIZED: len(specialized),
            })

            hist_avg = self._bucket_average(hist)
            similar_avg = self._bucket_average(similar)
            specialized_avg = self._bucket_average(specialized)

            if key in PUTTING_ROUND_KEYS and specialized_avg is not None:
                value = self._blend(specialized_avg, len(player.specialized_rounds), self.specialized_weight, hist_avg)
                source = SOURCE_BLENDED if hist_avg is not None else SOURCE_SPECIALIZED
            elif similar_avg is not None:
                value = self._blend(similar_avg, len(player.similar_rounds), self.similar_weight, hist_avg)
                source = SOURCE_BLENDED if hist_avg is not None else SOURCE_SIMILAR
            elif hist_avg is not None:
                value = hist_avg
                source = SOURCE_HISTORICAL
            else:
                if pooled_rounds is None:
                    pooled_rounds = player.all_rounds
                pooled = _valid_values(pooled_rounds, key)
                if len(pooled) >= self.min_samples:
                    value = exponential_weighted_average(pooled, self.decay)
                    source = SOURCE_POOLED
                    if len(pooled_rounds) < LOW_DATA_ROUNDS:
                        low_data.append(name)
                else:
                    value = 0.0
                    source = SOURCE_MISSING

            values.append(value)
            sources.append(source)

        if low_data:
            logger.debug("Player %s: pooled low-data metrics %s", player.id, ", ".join(low_data))
        return HistoricalAverages(values=values, sources=sources, counts=counts, low_data=low_data)
