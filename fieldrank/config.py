"""Ranking configuration: metric groups, blend weights, course setup, past performance."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .data.normalize import coerce_number, normalize_id
from .errors import RankingInputError
from .metrics import BCC_NAME, resolve_metric_index

logger = logging.getLogger(__name__)

# Group weight substituted for a missing or non-positive entry before renormalization.
FALLBACK_GROUP_WEIGHT = 0.1
COURSE_SETUP_TOLERANCE = 0.01


@dataclass
class MetricSpec:
    name: str
    index: int
    weight: float


@dataclass
class MetricGroup:
    name: str
    metrics: List[MetricSpec]
    weight: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "weight": self.weight,
            "metrics": [{"name": m.name, "weight": m.weight} for m in self.metrics],
        }


@dataclass
class CourseSetupWeights:
    """Share of approach shots the host course asks for, by distance bucket."""

    under_100: float = 0.25
    from_100_to_150: float = 0.25
    from_150_to_200: float = 0.25
    over_200: float = 0.25

    def normalized(self) -> "CourseSetupWeights":
        total = self.under_100 + self.from_100_to_150 + self.from_150_to_200 + self.over_200
        if total <= 0:
            logger.warning("Course setup weights sum to %.3f; using an even split", total)
            return CourseSetupWeights()
        if abs(total - 1.0) <= COURSE_SETUP_TOLERANCE:
            return self
        logger.warning("Course setup weights sum to %.3f; renormalizing", total)
        return CourseSetupWeights(
            under_100=self.under_100 / total,
            from_100_to_150=self.from_100_to_150 / total,
            from_150_to_200=self.from_150_to_200 / total,
            over_200=self.over_200 / total,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CourseSetupWeights":
        kwargs = {}
        for key in ("under_100", "from_100_to_150", "from_150_to_200", "over_200"):
            if key in data:
                value = coerce_number(data[key])
                kwargs[key] = max(0.0, value) if value is not None else 0.0
        return cls(**kwargs)


@dataclass
class PastPerformanceConfig:
    enabled: bool = False
    weight: float = 0.0
    current_event_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PastPerformanceConfig":
        weight = coerce_number(data.get("weight"))
        current = data.get("current_event_id")
        return cls(
            enabled=bool(data.get("enabled", False)),
            weight=weight if weight is not None else 0.0,
            current_event_id=normalize_id(current) or None,
        )


# ---------------------------------------------------------------------------
# Default group table
# ---------------------------------------------------------------------------

# (group name, group weight, ((metric label, metric weight), ...))
DEFAULT_GROUP_LAYOUT: Tuple[Tuple[str, float, Tuple[Tuple[str, float], ...]], ...] = (
    ("Driving Performance", 0.12, (
        ("Driving Distance", 0.05),
        ("Driving Accuracy", 0.40),
        ("SG OTT", 0.55),
    )),
    ("Approach - Short (<100)", 0.08, (
        ("Approach <100 GIR", 0.10),
        ("Approach <100 SG", 0.40),
        ("Approach <100 Prox", 0.50),
    )),
    ("Approach - Mid (100-150)", 0.12, (
        ("Approach <150 FW GIR", 0.10),
        ("Approach <150 FW SG", 0.42),
        ("Approach <150 FW Prox", 0.48),
        ("Approach <150 Rough GIR", 0.10),
        ("Approach <150 Rough SG", 0.42),
        ("Approach <150 Rough Prox", 0.48),
    )),
    ("Approach - Long (150-200)", 0.12, (
        ("Approach <200 FW GIR", 0.10),
        ("Approach <200 FW SG", 0.35),
        ("Approach <200 FW Prox", 0.55),
        ("Approach >150 Rough GIR", 0.10),
        ("Approach >150 Rough SG", 0.35),
        ("Approach >150 Rough Prox", 0.55),
    )),
    ("Approach - Very Long (>200)", 0.06, (
        ("Approach >200 FW GIR", 0.09),
        ("Approach >200 FW SG", 0.28),
        ("Approach >200 FW Prox", 0.63),
    )),
    ("Putting", 0.12, (
        ("SG Putting", 1.0),
    )),
    ("Around the Green", 0.08, (
        ("SG Around Green", 1.0),
    )),
    ("Scoring", 0.18, (
        ("SG T2G", 0.22),
        ("Scoring Average", 0.13),
        (BCC_NAME, 0.12),
        ("Scoring: Approach <100 SG", 0.154),
        ("Scoring: Approach <150 FW SG", 0.253),
        ("Scoring: Approach <150 Rough SG", 0.253),
        ("Scoring: Approach <200 FW SG", 0.293),
        ("Scoring: Approach >200 FW SG", 0.30),
        ("Scoring: Approach >150 Rough SG", 0.30),
    )),
    ("Course Management", 0.12, (
        ("Scrambling", 0.10),
        ("Great Shots", 0.08),
        ("Poor Shots", 0.08),
        ("Course Management: Approach <100 Prox", 0.154),
        ("Course Management: Approach <150 FW Prox", 0.253),
        ("Course Management: Approach <150 Rough Prox", 0.253),
        ("Course Management: Approach >150 Rough Prox", 0.30),
        ("Course Management: Approach <200 FW Prox", 0.293),
        ("Course Management: Approach >200 FW Prox", 0.30),
    )),
)


def default_group_table() -> List[dict]:
    return [
        {
            "name": name,
            "weight": weight,
            "metrics": [{"name": label, "weight": w} for label, w in metrics],
        }
        for name, weight, metrics in DEFAULT_GROUP_LAYOUT
    ]


def _sanitize_group_weight(group_name: str, raw: Any) -> float:
    weight = coerce_number(raw)
    if weight is None or weight <= 0:
        logger.warning(
            "Invalid weight %r for group '%s'; using %.2f", raw, group_name, FALLBACK_GROUP_WEIGHT
        )
        return FALLBACK_GROUP_WEIGHT
    return weight


def _sanitize_metric_weight(group_name: str, metric_name: str, raw: Any) -> float:
    weight = coerce_number(raw)
    if weight is None or weight < 0:
        logger.warning("Invalid weight %r for '%s' in group '%s'; using 0", raw, metric_name, group_name)
        return 0.0
    return weight


def build_metric_groups(table: Optional[Sequence[Mapping[str, Any]]]) -> List[MetricGroup]:
    """Resolve a group/metric weight table into normalized ``MetricGroup`` objects.

    Group weights and the metric weights inside each group are renormalized
    to sum to 1.  Invalid group weights fall back to
    ``FALLBACK_GROUP_WEIGHT``; invalid metric weights fall back to 0, and a
    group whose metric weights all end up 0 is split evenly.

    Raises:
        RankingInputError: if the table is empty, a metric label is unknown,
            or a group has no metrics.
    """
    if not table:
        raise RankingInputError("Metric group definitions are empty")

    groups: List[MetricGroup] = []
    for entry in table:
        name = str(entry.get("name", "")).strip()
        if not name:
            raise RankingInputError("Metric group is missing a name")

        specs: List[MetricSpec] = []
        for metric in entry.get("metrics") or []:
            label = str(metric.get("name", "")).strip()
            try:
                index = resolve_metric_index(label)
            except KeyError:
                raise RankingInputError(f"Unknown metric '{label}' in group '{name}'")
            specs.append(MetricSpec(label, index, _sanitize_metric_weight(name, label, metric.get("weight"))))

        if not specs:
            raise RankingInputError(f"Metric group '{name}' has no metrics")

        metric_total = sum(spec.weight for spec in specs)
        for spec in specs:
            spec.weight = spec.weight / metric_total if metric_total > 0 else 1.0 / len(specs)

        groups.append(MetricGroup(name, specs, _sanitize_group_weight(name, entry.get("weight"))))

    group_total = sum(group.weight for group in groups)
    for group in groups:
        group.weight = group.weight / group_total
    return groups


def default_metric_groups() -> List[MetricGroup]:
    return build_metric_groups(default_group_table())


def _clamp_unit(name: str, value: float) -> float:
    if 0.0 <= value <= 1.0:
        return value
    logger.warning("%s=%.3f outside [0, 1]; clamping", name, value)
    return min(max(value, 0.0), 1.0)


@dataclass
class RankingConfig:
    """Knobs for one ranking run."""

    groups: List[MetricGroup] = field(default_factory=default_metric_groups)
    similar_event_ids: List[str] = field(default_factory=list)
    specialized_event_ids: List[str] = field(default_factory=list)

    # Historical blend
    similar_weight: float = 0.6
    specialized_weight: float = 0.7
    recency_lambda: float = 0.2
    min_samples: int = 2
    plenty_samples: int = 20

    # Trends
    trend_weight: float = 0.30
    trend_lambda: float = 0.2

    course_setup: CourseSetupWeights = field(default_factory=CourseSetupWeights)
    past_performance: PastPerformanceConfig = field(default_factory=PastPerformanceConfig)

    # False selects the flat profile: refined = weighted * confidence.
    apply_coverage_dampening: bool = True
    current_season: Optional[int] = None
    stats_cache_max_age_days: int = 7

    def __post_init__(self):
        self.similar_weight = _clamp_unit("similar_weight", self.similar_weight)
        self.specialized_weight = _clamp_unit("specialized_weight", self.specialized_weight)
        self.past_performance.weight = _clamp_unit("past_performance.weight", self.past_performance.weight)
        self.course_setup = self.course_setup.normalized()
        if not self.groups:
            raise RankingInputError("Metric group definitions are empty")

    @property
    def current_event_id(self) -> Optional[str]:
        return self.past_performance.current_event_id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RankingConfig":
        """Build a config from a JSON-style dictionary; absent keys keep their defaults."""
        kwargs: Dict[str, Any] = {}
        if "groups" in data:
            kwargs["groups"] = build_metric_groups(data["groups"])
        for key in ("similar_event_ids", "specialized_event_ids"):
            if key in data:
                kwargs[key] = [normalize_id(v) for v in data[key] if normalize_id(v)]
        for key in ("similar_weight", "specialized_weight", "recency_lambda", "trend_weight", "trend_lambda"):
            if key in data:
                value = coerce_number(data[key])
                if value is None:
                    logger.warning("Ignoring non-numeric %s=%r", key, data[key])
                    continue
                kwargs[key] = value
        for key in ("min_samples", "plenty_samples", "stats_cache_max_age_days"):
            if key in data:
                kwargs[key] = int(data[key])
        if "course_setup" in data:
            kwargs["course_setup"] = CourseSetupWeights.from_dict(data["course_setup"])
        if "past_performance" in data:
            kwargs["past_performance"] = PastPerformanceConfig.from_dict(data["past_performance"])
        if "apply_coverage_dampening" in data:
            kwargs["apply_coverage_dampening"] = bool(data["apply_coverage_dampening"])
        if data.get("current_season") is not None:
            kwargs["current_season"] = int(data["current_season"])
        return cls(**kwargs)
