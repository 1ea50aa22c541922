"""One ranking run, phase by phase, with explicit ordering barriers."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .config import RankingConfig
from .data.aggregator import aggregate_players
from .engine.averages import HistoricalAverager, HistoricalAverages
from .engine.composite import MetricVector, build_metric_vector
from .engine.group_stats import GroupStats, GroupStatsCache, compute_group_stats
from .engine.ranker import rank_players
from .engine.scorer import Scorer
from .engine.trends import apply_trends, calculate_metric_trends
from .errors import PhaseOrderError, RankingInputError
from .models.records import PlayerRecord
from .models.score import PlayerScore

logger = logging.getLogger(__name__)

PHASES = ("aggregate", "average", "vectors", "trends", "group_stats", "score", "rank")


class RankingPipeline:
    """Runs aggregation → averages → BCC → trends → group stats → scoring → ranking.

    Each phase can be called on its own, but only after every phase before
    it has completed; calling one early raises ``PhaseOrderError`` instead of
    silently computing statistics over a partial field.
    """

    def __init__(
        self,
        config: Optional[RankingConfig] = None,
        stats_cache: Optional[GroupStatsCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or RankingConfig()
        self.stats_cache = stats_cache
        self.clock = clock or datetime.now
        self.averager = HistoricalAverager(
            similar_weight=self.config.similar_weight,
            specialized_weight=self.config.specialized_weight,
            decay=self.config.recency_lambda,
            min_samples=self.config.min_samples,
            plenty_samples=self.config.plenty_samples,
        )
        self._reset()

    def _reset(self) -> None:
        self._completed: set = set()
        self.players: Dict[str, PlayerRecord] = {}
        self.averages: Dict[str, HistoricalAverages] = {}
        self.base_vectors: Dict[str, MetricVector] = {}
        self.trends: Dict[str, List[float]] = {}
        self.adjusted_vectors: Dict[str, MetricVector] = {}
        self.group_stats: GroupStats = {}
        self.scores: List[PlayerScore] = []
        self.ranked: List[PlayerScore] = []

    def _require(self, phase: str) -> None:
        missing = [p for p in PHASES[: PHASES.index(phase)] if p not in self._completed]
        if missing:
            raise PhaseOrderError(f"Phase '{phase}' requires {', '.join(missing)} to run first")

    def _done(self, phase: str) -> None:
        self._completed.add(phase)
        logger.info("Phase complete: %s", phase)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def aggregate(
        self,
        roster: Iterable[Mapping[str, Any]],
        rounds: Iterable[Mapping[str, Any]],
        approach_rows: Iterable[Mapping[str, Any]] = (),
    ) -> Dict[str, PlayerRecord]:
        self._reset()
        self.players = aggregate_players(
            roster,
            rounds,
            similar_event_ids=self.config.similar_event_ids,
            specialized_event_ids=self.config.specialized_event_ids,
            approach_rows=approach_rows,
            current_event_id=self.config.current_event_id,
            current_season=self.config.current_season,
        )
        self._done("aggregate")
        return self.players

    def compute_averages(self) -> Dict[str, HistoricalAverages]:
        self._require("average")
        self.averages = {pid: self.averager.average(p) for pid, p in self.players.items()}
        self._done("average")
        return self.averages

    def build_vectors(self) -> Dict[str, MetricVector]:
        self._require("vectors")
        self.base_vectors = {
            pid: build_metric_vector(self.averages[pid], player.approach_metrics, self.config.course_setup)
            for pid, player in self.players.items()
        }
        self._done("vectors")
        return self.base_vectors

    def compute_trends(self) -> Dict[str, MetricVector]:
        self._require("trends")
        for pid, player in self.players.items():
            trends = calculate_metric_trends(player, self.config.trend_lambda)
            self.trends[pid] = trends
            self.adjusted_vectors[pid] = apply_trends(self.base_vectors[pid], trends, self.config.trend_weight)
        self._done("trends")
        return self.adjusted_vectors

    def compute_group_stats(self) -> GroupStats:
        """Field statistics over the pre-trend vectors of every player."""
        self._require("group_stats")
        self.group_stats = compute_group_stats(self.config.groups, self.base_vectors.values())
        if self.stats_cache is not None:
            self.stats_cache.store(self.group_stats, self.clock())
        self._done("group_stats")
        return self.group_stats

    def score(self) -> List[PlayerScore]:
        self._require("score")
        scorer = Scorer(self.config, self.group_stats)
        self.scores = [
            scorer.score(player, self.adjusted_vectors[pid], self.trends[pid], self.averages[pid])
            for pid, player in self.players.items()
        ]
        self._done("score")
        return self.scores

    def rank(self) -> List[PlayerScore]:
        self._require("rank")
        self.ranked = rank_players(self.scores)
        self._done("rank")
        return self.ranked

    def run(
        self,
        roster: Iterable[Mapping[str, Any]],
        rounds: Iterable[Mapping[str, Any]],
        approach_rows: Iterable[Mapping[str, Any]] = (),
    ) -> List[PlayerScore]:
        """Run every phase in order and return the ranked field."""
        self.aggregate(roster, rounds, approach_rows)
        self.compute_averages()
        self.build_vectors()
        self.compute_trends()
        self.compute_group_stats()
        self.score()
        return self.rank()

    def report(self) -> Dict:
        """JSON-serializable summary of the last completed run."""
        if "rank" not in self._completed:
            raise PhaseOrderError("No completed ranking run to report")
        return {
            "metadata": {
                "timestamp": self.clock().isoformat(),
                "player_count": len(self.ranked),
                "group_count": len(self.config.groups),
            },
            "groups": [group.to_dict() for group in self.config.groups],
            "group_stats": {
                group: {metric: {"mean": s.mean, "std_dev": s.std_dev} for metric, s in metrics.items()}
                for group, metrics in self.group_stats.items()
            },
            "players": [player.to_dict() for player in self.ranked],
        }


def run_ranking(
    roster: Iterable[Mapping[str, Any]],
    rounds: Iterable[Mapping[str, Any]],
    approach_rows: Iterable[Mapping[str, Any]] = (),
    config: Optional[RankingConfig] = None,
    stats_cache: Optional[GroupStatsCache] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> List[PlayerScore]:
    """Convenience wrapper: one full ranking run."""
    if config is None:
        raise RankingInputError("Ranking configuration is required")
    return RankingPipeline(config, stats_cache, clock).run(roster, rounds, approach_rows)


def run_ranking_to_file(pipeline: RankingPipeline, inputs: Mapping[str, Any], output_path: str) -> Dict:
    """Execute a pipeline over loaded inputs and persist the JSON report."""
    pipeline.run(inputs["roster"], inputs["rounds"], inputs.get("approach", ()))
    report = pipeline.report()
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2)
    return report
