"""Tests for final ranking and tie-breaking."""

import pytest

from fieldrank.engine.ranker import composite_score, confidence_interval, metric_volatility, rank_players
from fieldrank.models.score import PlayerScore


def make_score(pid, refined, war, weighted=None, coverage=0.9, metrics=None, trends=None):
    return PlayerScore(
        id=pid,
        name=pid.upper(),
        group_scores={},
        weighted_score=refined if weighted is None else weighted,
        refined_weighted_score=refined,
        past_performance_multiplier=1.0,
        final_score=refined,
        war=war,
        data_coverage=coverage,
        confidence_factor=0.9,
        trends=trends if trends is not None else [0.0] * 16,
        metrics=metrics if metrics is not None else [1.0] * 35,
    )


def ids(players):
    return [p.id for p in players]


class TestTieBreaking:
    def test_war_breaks_identical_scores(self):
        c = make_score("c", 0.812, 0.55)
        d = make_score("d", 0.812, 0.91)
        ranked = rank_players([c, d])
        assert ids(ranked) == ["d", "c"]
        assert [p.rank for p in ranked] == [1, 2]

    def test_shared_rank(self):
        players = [make_score("a", 0.9, 0.500), make_score("b", 0.9, 0.505), make_score("c", 0.5, 0.0)]
        ranked = rank_players(players)
        assert [p.rank for p in ranked] == [1, 1, 3]

    def test_close_scores_use_composite(self):
        a = make_score("a", 0.80, 1.0)
        b = make_score("b", 0.83, 0.0)
        assert ids(rank_players([b, a])) == ["a", "b"]

    def test_clear_gap_ignores_war(self):
        a = make_score("a", 0.5, 10.0)
        b = make_score("b", 0.9, 0.0)
        assert ids(rank_players([a, b])) == ["b", "a"]

    def test_id_fallback(self):
        first = rank_players([make_score("b", 0.7, 0.2), make_score("a", 0.7, 0.2)])
        second = rank_players([make_score("a", 0.7, 0.2), make_score("b", 0.7, 0.2)])
        assert ids(first) == ids(second) == ["a", "b"]
        assert [p.rank for p in first] == [1, 1]

    def test_ranks_never_decrease(self):
        players = [make_score(str(i), round(1.0 - 0.01 * (i % 7), 2), 0.1 * (i % 3)) for i in range(30)]
        ranks = [p.rank for p in rank_players(players)]
        assert ranks == sorted(ranks)
        assert ranks[0] == 1

    def test_deterministic(self):
        def build():
            return [make_score(str(i), 0.3 * (i % 4), 0.05 * i) for i in range(12)]

        assert [p.to_dict() for p in rank_players(build())] == [p.to_dict() for p in rank_players(build())]


class TestComposite:
    def test_composite_score(self):
        player = make_score("a", 0.8, 0.5)
        assert composite_score(player) == pytest.approx(0.7 * 0.8 + 0.3 * 0.5)
        rank_players([player])
        assert player.composite_score == pytest.approx(0.71)


class TestVolatility:
    def test_bounds(self):
        assert metric_volatility([1.0] * 35, [0.0] * 16) == pytest.approx(0.1)
        assert metric_volatility([0.0, 100.0] * 10, [1.0] * 16) == pytest.approx(0.9)

    def test_missing_inputs(self):
        assert metric_volatility([], []) == 0.5

    def test_confidence_interval_symmetric(self):
        player = make_score("a", 0.8, 0.5, weighted=1.2, coverage=0.5)
        low, high = confidence_interval(player)
        assert (low + high) / 2 == pytest.approx(1.2)
        uncertainty = (max(0.1, 0.25) + 0.1) / 2
        assert high - low == pytest.approx(2 * uncertainty * 1.2 * 0.5)
