"""Tests for field statistics and the stats cache."""

from datetime import datetime, timedelta

import pytest

from fieldrank.config import build_metric_groups
from fieldrank.engine.composite import MetricVector
from fieldrank.engine.group_stats import (
    STD_DEV_EPSILON,
    GroupStatsCache,
    MetricStats,
    compute_group_stats,
    transform_value,
)
from fieldrank.metrics import BCC_NAME, METRIC_COUNT, METRIC_INDICES


def make_vector(**by_name):
    values = [0.0] * METRIC_COUNT
    for name, value in by_name.items():
        values[METRIC_INDICES[name]] = value
    return MetricVector(tuple(values), tuple(v != 0 for v in values), {})


def single_metric_groups(name, group="G"):
    return build_metric_groups([{"name": group, "weight": 1, "metrics": [{"name": name, "weight": 1}]}])


class TestTransformValue:
    def test_lower_is_better_subtracted_from_ceiling(self):
        assert transform_value("Fairway Proximity", 45.0) == 15.0
        assert transform_value("Approach <100 Prox", 25.0) == 15.0
        assert transform_value("Poor Shots", 4.0) == 8.0

    def test_scoring_average_transformed(self):
        assert transform_value("Scoring Average", 70.0) == 4.0

    def test_proximity_floored_at_zero(self):
        assert transform_value("Fairway Proximity", 75.0) == 0.0

    def test_higher_is_better_unchanged(self):
        assert transform_value("SG Putting", -0.3) == -0.3
        assert transform_value(BCC_NAME, 2.5) == 2.5


class TestComputeGroupStats:
    def test_bessel_corrected_and_zeros_skipped(self):
        vectors = [make_vector(**{"SG Putting": v}) for v in (1.0, 2.0, 3.0, 0.0)]
        stats = compute_group_stats(single_metric_groups("SG Putting"), vectors)
        assert stats["G"]["SG Putting"].mean == pytest.approx(2.0)
        assert stats["G"]["SG Putting"].std_dev == pytest.approx(1.0)

    def test_stats_over_transformed_values(self):
        vectors = [make_vector(**{"Fairway Proximity": v}) for v in (30.0, 40.0)]
        stats = compute_group_stats(single_metric_groups("Fairway Proximity"), vectors)
        assert stats["G"]["Fairway Proximity"].mean == pytest.approx(25.0)

    def test_single_value_floors_std(self):
        stats = compute_group_stats(single_metric_groups("SG OTT"), [make_vector(**{"SG OTT": 0.4})])
        assert stats["G"]["SG OTT"] == MetricStats(0.4, STD_DEV_EPSILON)

    def test_all_zero_uses_baseline(self):
        vectors = [make_vector() for _ in range(5)]
        stats = compute_group_stats(single_metric_groups(BCC_NAME), vectors)
        bcc = stats["G"][BCC_NAME]
        assert (bcc.mean, bcc.std_dev) == (4.0, 3.0)
        z = [bcc.z_score(transform_value(BCC_NAME, v.values[METRIC_INDICES[BCC_NAME]])) for v in vectors]
        assert z == [pytest.approx((0 - 4.0) / 3.0)] * 5

    def test_proximity_baseline_transformed(self):
        stats = compute_group_stats(single_metric_groups("Fairway Proximity"), [make_vector()])
        assert stats["G"]["Fairway Proximity"] == MetricStats(30.0, 7.0)

    def test_no_baseline_means_neutral(self):
        stats = compute_group_stats(single_metric_groups("SG Putting"), [make_vector()])
        assert stats["G"]["SG Putting"] == MetricStats(0.0, STD_DEV_EPSILON)

    def test_keyed_by_label(self):
        groups = build_metric_groups([{"name": "Scoring", "weight": 1, "metrics": [
            {"name": "Scoring: Approach <100 SG", "weight": 1},
        ]}])
        stats = compute_group_stats(groups, [make_vector(**{"Approach <100 SG": 0.5})])
        assert stats["Scoring"]["Scoring: Approach <100 SG"].mean == pytest.approx(0.5)


class TestGroupStatsCache:
    @pytest.fixture
    def stats(self):
        return {"G": {"SG Putting": MetricStats(0.1, 0.5)}}

    def test_empty_cache(self):
        assert GroupStatsCache().get(datetime(2025, 1, 1)) is None

    def test_fresh_and_stale(self, stats):
        cache = GroupStatsCache()
        stored = datetime(2025, 1, 1)
        cache.store(stats, stored)
        assert cache.get(stored + timedelta(days=6)) is stats
        assert cache.get(stored + timedelta(days=8)) is None

    def test_round_trip(self, stats):
        cache = GroupStatsCache(max_age=timedelta(days=3))
        cache.store(stats, datetime(2025, 1, 1, 12, 0))
        restored = GroupStatsCache.from_dict(cache.to_dict())
        assert restored.max_age == timedelta(days=3)
        assert restored.timestamp == datetime(2025, 1, 1, 12, 0)
        assert restored.get(datetime(2025, 1, 2)) == stats
