"""Tests for the scorer: z-scores, coverage tiers, past performance and WAR."""

import math
from datetime import date, timedelta

import pytest

from fieldrank.config import MetricGroup, MetricSpec, PastPerformanceConfig, RankingConfig, build_metric_groups
from fieldrank.engine.composite import MetricVector
from fieldrank.engine.group_stats import MetricStats
from fieldrank.engine.scorer import (
    Scorer,
    baseline_score,
    calculate_war,
    coverage_confidence,
    coverage_multiplier,
    has_recent_top10,
    latest_event_top10,
    past_performance_multiplier,
    position_score,
    scoring_penalty,
)
from fieldrank.metrics import METRIC_COUNT, METRIC_INDICES
from fieldrank.models.records import EventRecord, PlayerRecord, RoundRecord

TWENTY_METRICS = [
    "SG Total", "Driving Distance", "Driving Accuracy", "SG T2G", "SG Approach",
    "SG Around Green", "SG OTT", "SG Putting", "Greens in Regulation", "Scrambling",
    "Great Shots", "Birdies or Better", "Approach <100 GIR", "Approach <100 SG",
    "Approach <150 FW GIR", "Approach <150 FW SG", "Approach <150 Rough GIR",
    "Approach <150 Rough SG", "Approach >150 Rough GIR", "Approach >150 Rough SG",
]


def config_for(names, dampening=True, past=None):
    groups = build_metric_groups([
        {"name": "All", "weight": 1, "metrics": [{"name": n, "weight": 1} for n in names]},
    ])
    return RankingConfig(
        groups=groups,
        apply_coverage_dampening=dampening,
        past_performance=past or PastPerformanceConfig(),
    )


def unit_stats(groups, mean=0.0, std=1.0):
    return {g.name: {m.name: MetricStats(mean, std) for m in g.metrics} for g in groups}


def vector_with(value, with_data):
    """``value`` for the first ``with_data`` of TWENTY_METRICS, zero/no data for the rest."""
    values = [0.0] * METRIC_COUNT
    has_data = [False] * METRIC_COUNT
    for name in TWENTY_METRICS[:with_data]:
        values[METRIC_INDICES[name]] = value
        has_data[METRIC_INDICES[name]] = True
    return MetricVector(tuple(values), tuple(has_data), {})


def player_with_finishes(positions, pid="1"):
    """Player whose events (newest first) finished at ``positions``."""
    player = PlayerRecord(id=pid, name=f"Player {pid}")
    latest = date(2024, 12, 1)
    for i, position in enumerate(positions):
        played = latest - timedelta(days=7 * i)
        event = EventRecord(
            event_id=f"E{i}",
            year=played.year,
            position=position,
            rounds=[RoundRecord(date=played, event_id=f"E{i}", round_num=1)],
        )
        player.events[PlayerRecord.event_key(pid, event.event_id, event.year)] = event
    return player


def score(player, value, with_data, **config_kwargs):
    config = config_for(TWENTY_METRICS, **config_kwargs)
    scorer = Scorer(config, unit_stats(config.groups))
    return scorer.score(player, vector_with(value, with_data))


class TestHelpers:
    def test_confidence_bounds_and_monotonic(self):
        grid = [i / 100 for i in range(-10, 111)]
        values = [coverage_confidence(c) for c in grid]
        assert values == sorted(values)
        assert coverage_confidence(0.0) == 0.5
        assert coverage_confidence(1.0) == 1.0
        assert coverage_confidence(2.0) == 1.0

    def test_scoring_penalty(self):
        assert scoring_penalty("Birdies or Better", 4.0) == pytest.approx(4.0 * 2 ** 0.75)
        assert scoring_penalty("Birdies or Better", -3.0) == pytest.approx(-3.0 * 1.5 ** 0.75)
        assert scoring_penalty("Birdies or Better", 1.5) == 1.5
        assert scoring_penalty("SG Putting", 4.0) == 4.0

    def test_coverage_multiplier(self):
        assert coverage_multiplier(0.70) == pytest.approx(0.49)
        assert coverage_multiplier(0.85) == pytest.approx(0.95)
        assert coverage_multiplier(1.0) == pytest.approx(1.0)
        assert 0.95 <= coverage_multiplier(0.95) <= 1.0

    @pytest.mark.parametrize("position,expected", [
        (1, 1.5), (2, 1.2), (3, 1.2), (5, 1.0), (10, 0.8), (25, 0.4), (50, 0.1), (51, -0.2), (100, -0.2),
        (None, -0.2),
    ])
    def test_position_score(self, position, expected):
        assert position_score(position) == expected


class TestRecentForm:
    def test_baseline_tiers(self):
        assert baseline_score(PlayerRecord(id="1", name="A"), None) == 0.20
        assert baseline_score(player_with_finishes([100, 100, 100]), None) == 0.20
        assert baseline_score(player_with_finishes([30, 100]), None) == 0.30
        assert baseline_score(player_with_finishes([40, 15]), None) == 0.75
        assert baseline_score(player_with_finishes([40, 8, 15]), None) == 1.20

    def test_window_is_ten_finishes(self):
        assert baseline_score(player_with_finishes([30] * 10 + [2]), None) == 0.30
        assert not has_recent_top10(player_with_finishes([30] * 10 + [2]), None)

    def test_missed_cuts_do_not_use_window(self):
        assert baseline_score(player_with_finishes([100] * 10 + [5]), None) == 1.20

    def test_current_event_excluded(self):
        player = player_with_finishes([1, 40])
        assert has_recent_top10(player, None)
        assert not has_recent_top10(player, "E0")

    def test_latest_event_decides_tier_form(self):
        player = player_with_finishes([100, 40, 60, 5])
        assert has_recent_top10(player, None)
        assert not latest_event_top10(player, None)
        assert latest_event_top10(player_with_finishes([7, 100]), None)

    def test_latest_event_skips_current(self):
        player = player_with_finishes([3, 100])
        assert latest_event_top10(player, None)
        assert not latest_event_top10(player, "E0")


class TestPastPerformance:
    def test_disabled(self):
        assert past_performance_multiplier(player_with_finishes([1]), PastPerformanceConfig()) == 1.0

    def test_no_events(self):
        assert past_performance_multiplier(PlayerRecord(id="1", name="A"), PastPerformanceConfig(True, 1.0)) == 1.0

    def test_win_clamped_and_interpolated(self):
        player = player_with_finishes([1])
        assert past_performance_multiplier(player, PastPerformanceConfig(True, 1.0)) == pytest.approx(3.0)
        assert past_performance_multiplier(player, PastPerformanceConfig(True, 0.5)) == pytest.approx(2.0)

    def test_missed_cut_penalty(self):
        player = player_with_finishes([100])
        assert past_performance_multiplier(player, PastPerformanceConfig(True, 1.0)) == pytest.approx(0.6)

    def test_recency_weighting(self):
        player = player_with_finishes([10, 100])
        avg = (1.0 * 0.8 + 0.5 * -0.2) / 1.5
        expected = 1 + 1.8 * avg ** 1.2
        assert past_performance_multiplier(player, PastPerformanceConfig(True, 1.0)) == pytest.approx(expected)

    def test_current_event_skipped(self):
        player = player_with_finishes([1, 100])
        config = PastPerformanceConfig(True, 1.0, current_event_id="E0")
        assert past_performance_multiplier(player, config) == pytest.approx(0.6)


class TestWar:
    def test_log_compressed(self):
        groups = build_metric_groups([
            {"name": "A", "weight": 1, "metrics": [{"name": "SG Putting", "weight": 1}]},
            {"name": "B", "weight": 1, "metrics": [{"name": "SG OTT", "weight": 1}]},
        ])
        war = calculate_war(groups, {("A", "SG Putting"): 3.0, ("B", "SG OTT"): -1.0})
        assert war == pytest.approx(0.5 * math.log(4.0) - 0.5 * math.log(2.0))

    def test_no_kpis(self):
        assert calculate_war([], {}) == 0.0


class TestCoverageTiers:
    def test_well_covered_player(self):
        # 20 rounds of history, 19 of 20 metric slots populated
        result = score(PlayerRecord(id="1", name="A"), 1.0, 19)
        assert result.data_coverage == pytest.approx(0.95)
        assert result.weighted_score == pytest.approx(0.95)
        multiplier = coverage_multiplier(0.95)
        assert 0.95 <= multiplier <= 1.0
        assert result.refined_weighted_score == pytest.approx(0.95 * result.confidence_factor * multiplier)
        assert not result.is_low_confidence
        assert result.group_scores_after_dampening is None

    def test_very_sparse_player_replaced_by_baseline(self):
        player = player_with_finishes([30, 8, 100, 45])
        result = score(player, 5.0, 8)
        assert result.data_coverage == pytest.approx(0.40)
        assert result.refined_weighted_score == 1.20
        assert result.is_low_confidence
        factor = 0.40 ** 0.35
        assert result.group_scores["All"] == pytest.approx(result.group_scores_before_dampening["All"] * factor)

    def test_sparse_without_top10_capped(self):
        result = score(PlayerRecord(id="1", name="A"), 10.0, 12)
        assert result.data_coverage == pytest.approx(0.60)
        assert result.refined_weighted_score == 1.15
        assert result.is_low_confidence

    def test_sparse_without_top10_floored(self):
        result = score(player_with_finishes([15]), -10.0, 12)
        assert result.refined_weighted_score == 0.75

    def test_sparse_with_top10_capped_not_floored(self):
        capped = score(player_with_finishes([5]), 10.0, 11)
        assert capped.data_coverage == pytest.approx(0.55)
        assert capped.refined_weighted_score == 1.10
        assert not capped.is_low_confidence
        negative = score(player_with_finishes([5]), -10.0, 11)
        assert negative.refined_weighted_score < 0

    def test_older_top10_still_floored(self):
        # newest event is a missed cut, so the older top-5 only lifts the floor
        result = score(player_with_finishes([100, 40, 60, 5]), -10.0, 12)
        assert result.refined_weighted_score == 1.20
        assert result.is_low_confidence
        assert result.has_recent_top10

    def test_tier_boundary_continuity(self):
        groups = [MetricGroup("All", [MetricSpec("SG Total", METRIC_INDICES["SG Total"], 0.001)] * 1000, 1.0)]
        stats = {"All": {"SG Total": MetricStats(0.0, 1.0)}}
        scorer = Scorer(RankingConfig(groups=groups), stats)

        def refined_at(slots_with_data):
            # Only slot coverage matters; the SG Total value is shared by every slot.
            group = MetricGroup(
                "All",
                [MetricSpec("SG Total", METRIC_INDICES["SG Total"], 0.001)] * slots_with_data
                + [MetricSpec("SG OTT", METRIC_INDICES["SG OTT"], 0.001)] * (1000 - slots_with_data),
                1.0,
            )
            scorer.groups = [group]
            scorer.group_stats = {"All": {"SG Total": MetricStats(0.0, 1.0), "SG OTT": MetricStats(0.0, 1.0)}}
            values = [0.0] * METRIC_COUNT
            has_data = [False] * METRIC_COUNT
            values[METRIC_INDICES["SG Total"]] = 1.0
            has_data[METRIC_INDICES["SG Total"]] = True
            return scorer.score(PlayerRecord(id="1", name="A"), MetricVector(tuple(values), tuple(has_data), {}))

        below = refined_at(699)
        above = refined_at(701)
        assert below.data_coverage == pytest.approx(0.699)
        assert above.data_coverage == pytest.approx(0.701)
        assert abs(below.refined_weighted_score - above.refined_weighted_score) <= 1.15 - 0.20

    def test_war_uses_undampened_z(self):
        result = score(PlayerRecord(id="1", name="A"), 1.0, 8)
        expected = 8 / 20 * math.log(2.0)
        assert result.war == pytest.approx(expected)


class TestCapsAndProfiles:
    def test_flat_profile(self):
        result = score(PlayerRecord(id="1", name="A"), 1.0, 19, dampening=False)
        assert result.refined_weighted_score == pytest.approx(result.weighted_score * result.confidence_factor)
        assert result.group_scores_after_dampening is None

    def test_low_confidence_cap(self):
        past = PastPerformanceConfig(True, 1.0)
        result = score(player_with_finishes([30]), 10.0, 8, dampening=False, past=past)
        assert result.confidence_factor < 0.85
        assert result.refined_weighted_score == 0.15
        assert result.past_performance_multiplier == 0.3
        assert result.final_score == pytest.approx(0.045)

    def test_recent_top10_lifts_cap(self):
        result = score(player_with_finishes([4]), 10.0, 8, dampening=False)
        assert result.refined_weighted_score > 0.15
        assert result.has_recent_top10


class TestMetricHandling:
    def test_lower_is_better_zero_is_missing(self):
        config = config_for(["Fairway Proximity"])
        scorer = Scorer(config, {"All": {"Fairway Proximity": MetricStats(30.0, 7.0)}})
        values = [0.0] * METRIC_COUNT
        has_data = [False] * METRIC_COUNT
        missing = scorer.score(PlayerRecord(id="1", name="A"), MetricVector(tuple(values), tuple(has_data), {}))
        assert missing.group_scores_before_dampening["All"] == 0.0

        values[METRIC_INDICES["Fairway Proximity"]] = 45.0
        has_data[METRIC_INDICES["Fairway Proximity"]] = True
        present = scorer.score(PlayerRecord(id="1", name="A"), MetricVector(tuple(values), tuple(has_data), {}))
        assert present.group_scores_before_dampening["All"] == pytest.approx((15.0 - 30.0) / 7.0)

    def test_metric_without_stats_is_skipped(self):
        config = config_for(["SG Putting", "SG OTT"])
        scorer = Scorer(config, {"All": {"SG Putting": MetricStats(0.0, 1.0)}})
        values = [0.0] * METRIC_COUNT
        values[METRIC_INDICES["SG Putting"]] = 2.0
        values[METRIC_INDICES["SG OTT"]] = 9.0
        result = scorer.score(PlayerRecord(id="1", name="A"), MetricVector(tuple(values), (True,) * METRIC_COUNT, {}))
        assert result.group_scores_before_dampening["All"] == pytest.approx(2.0)

    def test_nan_never_propagates(self):
        config = config_for(["SG Putting"])
        scorer = Scorer(config, unit_stats(config.groups))
        values = [0.0] * METRIC_COUNT
        values[METRIC_INDICES["SG Putting"]] = float("nan")
        result = scorer.score(PlayerRecord(id="1", name="A"), MetricVector(tuple(values), (True,) * METRIC_COUNT, {}))
        for value in (result.weighted_score, result.refined_weighted_score, result.war, result.final_score):
            assert math.isfinite(value)

    def test_finish_counts(self):
        result = score(player_with_finishes([1, 4, 8, 15, 100, None]), 1.0, 19)
        assert (result.top5, result.top10) == (2, 3)
