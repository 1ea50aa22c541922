"""Scored-player output model."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass
class PlayerScore:
    """Scorer output for one competitor; ``rank`` is filled in by the ranker."""

    id: str
    name: str
    group_scores: Dict[str, float]
    weighted_score: float
    refined_weighted_score: float
    past_performance_multiplier: float
    final_score: float
    war: float
    data_coverage: float
    confidence_factor: float
    trends: List[float]
    metrics: List[float] = field(default_factory=list)
    rank: Optional[int] = None

    # Diagnostics
    top5: int = 0
    top10: int = 0
    is_low_confidence: bool = False
    baseline_score: Optional[float] = None
    has_recent_top10: bool = False
    group_scores_before_dampening: Dict[str, float] = field(default_factory=dict)
    group_scores_after_dampening: Optional[Dict[str, float]] = None
    metric_sources: Dict[str, str] = field(default_factory=dict)
    low_data_metrics: List[str] = field(default_factory=list)

    # Filled in by the ranker
    composite_score: float = 0.0
    confidence_interval: Tuple[float, float] = (0.0, 0.0)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "rank": self.rank,
            "id": self.id,
            "name": self.name,
            "refined_weighted_score": self.refined_weighted_score,
            "weighted_score": self.weighted_score,
            "final_score": self.final_score,
            "war": self.war,
            "composite_score": self.composite_score,
            "past_performance_multiplier": self.past_performance_multiplier,
            "data_coverage": self.data_coverage,
            "confidence_factor": self.confidence_factor,
            "confidence_interval": list(self.confidence_interval),
            "group_scores": dict(self.group_scores),
            "trends": list(self.trends),
            "metrics": list(self.metrics),
            "top5": self.top5,
            "top10": self.top10,
            "is_low_confidence": self.is_low_confidence,
            "baseline_score": self.baseline_score,
            "has_recent_top10": self.has_recent_top10,
            "metric_sources": dict(self.metric_sources),
            "low_data_metrics": list(self.low_data_metrics),
        }
