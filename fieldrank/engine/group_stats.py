"""Field-wide mean and standard deviation per (group, metric)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

import numpy as np

from ..config import MetricGroup
from ..metrics import (
    BASELINE_STD_DEVS,
    PROXIMITY_METRICS,
    baseline_mean,
    canonical_name,
    is_lower_better,
    metric_ceiling,
)
from .composite import MetricVector

logger = logging.getLogger(__name__)

STD_DEV_EPSILON = 0.001


@dataclass
class MetricStats:
    mean: float
    std_dev: float

    def z_score(self, value: float) -> float:
        return (value - self.mean) / self.std_dev


GroupStats = Dict[str, Dict[str, MetricStats]]


def transform_value(metric_name: str, raw: float) -> float:
    """Map a raw metric value onto a higher-is-better scale.

    Lower-is-better metrics are subtracted from their ceiling; proximity
    results are floored at 0 so an outlier miss cannot go negative.
    """
    if not is_lower_better(metric_name):
        return raw
    transformed = metric_ceiling(metric_name) - raw
    if metric_name in PROXIMITY_METRICS:
        transformed = max(0.0, transformed)
    return transformed


def is_usable(raw) -> bool:
    return isinstance(raw, (int, float)) and math.isfinite(raw) and raw != 0


def _baseline_stats(metric_name: str) -> MetricStats:
    if metric_name in BASELINE_STD_DEVS:
        return MetricStats(
            mean=transform_value(metric_name, baseline_mean(metric_name)),
            std_dev=BASELINE_STD_DEVS[metric_name],
        )
    return MetricStats(mean=0.0, std_dev=STD_DEV_EPSILON)


def summarize(values: List[float]) -> MetricStats:
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean())
    std = float(arr.std(ddof=1)) if len(arr) > 1 else 0.0
    return MetricStats(mean=mean, std_dev=max(std, STD_DEV_EPSILON))


def compute_group_stats(groups: Iterable[MetricGroup], vectors: Iterable[MetricVector]) -> GroupStats:
    """Compute ``{group: {metric label: MetricStats}}`` over the whole field.

    Only usable (numeric, non-zero) raw values are sampled; statistics are
    taken over the transformed values the scorer compares against.
    """
    vectors = list(vectors)
    stats: GroupStats = {}
    for group in groups:
        group_stats: Dict[str, MetricStats] = {}
        for spec in group.metrics:
            name = canonical_name(spec.index)
            sample = [
                transform_value(name, vector.values[spec.index])
                for vector in vectors
                if is_usable(vector.values[spec.index])
            ]
            if sample:
                group_stats[spec.name] = summarize(sample)
            else:
                logger.warning("No field data for %s / %s; using baseline stats", group.name, spec.name)
                group_stats[spec.name] = _baseline_stats(name)
        stats[group.name] = group_stats
    return stats


class GroupStatsCache:
    """Caller-owned store for the most recent group statistics."""

    def __init__(self, max_age: timedelta = timedelta(days=7)):
        self.max_age = max_age
        self._stats: Optional[GroupStats] = None
        self._timestamp: Optional[datetime] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        return self._timestamp

    def store(self, stats: GroupStats, now: datetime) -> None:
        self._stats = stats
        self._timestamp = now

    def get(self, now: datetime) -> Optional[GroupStats]:
        """Cached stats, or ``None`` when empty or older than ``max_age``."""
        if self._stats is None or self._timestamp is None:
            return None
        if now - self._timestamp > self.max_age:
            logger.info("Group stats cache expired (stored %s)", self._timestamp.isoformat())
            return None
        return self._stats

    def to_dict(self) -> dict:
        return {
            "timestamp": self._timestamp.isoformat() if self._timestamp else None,
            "max_age_days": self.max_age.total_seconds() / 86400.0,
            "stats": {
                group: {metric: {"mean": s.mean, "std_dev": s.std_dev} for metric, s in metrics.items()}
                for group, metrics in (self._stats or {}).items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GroupStatsCache":
        cache = cls(max_age=timedelta(days=float(data.get("max_age_days", 7))))
        stats = {
            group: {metric: MetricStats(float(s["mean"]), float(s["std_dev"])) for metric, s in metrics.items()}
            for group, metrics in (data.get("stats") or {}).items()
        }
        if data.get("timestamp") and stats:
            cache.store(stats, datetime.fromisoformat(data["timestamp"]))
        return cache
