"""Scoring engine: averages, composites, trends, statistics, scoring and ranking."""

from .group_stats import GroupStatsCache, MetricStats
from .ranker import rank_players
from .scorer import Scorer

__all__ = ["GroupStatsCache", "MetricStats", "rank_players", "Scorer"]
