"""
Tournament Ranker Tests
tests/test_tournament.py
"""
import pytest

from curation.models.enumerations import Verdict
from curation.scoring.tournament import rank_top_candidates

COMPARE = ["A", "B"]


class TestPairwiseCounting:

    def test_split_decision_is_neutral(self, make_item, open_thresholds):
        x = make_item(90, 10, item_id="x", thresholds=open_thresholds)
        y = make_item(10, 90, item_id="y", thresholds=open_thresholds)
        rank_top_candidates([x, y], COMPARE, top_n=2)
        assert (x.pairwise_wins, x.pairwise_losses, x.playoff_score) == (1, 1, 0)
        assert (y.pairwise_wins, y.pairwise_losses, y.playoff_score) == (1, 1, 0)

    def test_four_item_pool(self, make_item, open_thresholds):
        x = make_item(90, 10, item_id="x", thresholds=open_thresholds)
        y = make_item(10, 90, item_id="y", thresholds=open_thresholds)
        z = make_item(50, 50, item_id="z", thresholds=open_thresholds)
        d = make_item(100, 100, item_id="d", thresholds=open_thresholds)
        winners = rank_top_candidates([x, y, z, d], COMPARE, top_n=4)

        # d beats everyone on both keys
        assert (d.pairwise_wins, d.pairwise_losses, d.playoff_score) == (6, 0, 6)
        # x vs y is 1/1; x vs z is 1/1; x vs d is 0/2
        assert (x.pairwise_wins, x.pairwise_losses) == (2, 4)
        assert x.playoff_score == y.playoff_score == -2
        assert z.playoff_score == -2
        assert winners[0] is d
        assert d.rank == 1
        assert sorted(i.rank for i in winners) == [1, 2, 3, 4]

    def test_ties_count_nothing(self, make_item, open_thresholds):
        items = [make_item(60, 60, item_id=f"t{i}", thresholds=open_thresholds) for i in range(4)]
        rank_top_candidates(items, COMPARE, top_n=4)
        for item in items:
            assert item.pairwise_wins == 0
            assert item.pairwise_losses == 0
            assert item.playoff_score == 0


class TestSelection:

    def test_excluded_items_dropped(self, make_item, open_thresholds):
        keep = make_item(40, 40, item_id="keep", thresholds=open_thresholds)
        dropped = make_item(100, 100, item_id="dropped")
        dropped.verdict = Verdict.EXCLUDE
        winners = rank_top_candidates([keep, dropped], COMPARE, top_n=5)
        assert winners == [keep]
        assert dropped.rank is None
        assert dropped.playoff_score is None

    @pytest.mark.parametrize("top_n", [0, -3])
    def test_non_positive_top_n(self, make_item, open_thresholds, top_n):
        items = [make_item(50, 50, thresholds=open_thresholds)]
        assert rank_top_candidates(items, COMPARE, top_n=top_n) == []

    def test_empty_input(self):
        assert rank_top_candidates([], COMPARE, top_n=3) == []

    def test_pool_limited_to_highest_composites(self, make_item, open_thresholds):
        items = [make_item(s, s, item_id=f"s{s}", thresholds=open_thresholds) for s in (10, 90, 50, 70, 30)]
        winners = rank_top_candidates(items, COMPARE, top_n=10, pool_size=3)
        assert [w.id for w in winners] == ["s90", "s70", "s50"]
        outside = [i for i in items if i.id in ("s10", "s30")]
        assert all(i.rank is None for i in outside)

    def test_top_n_truncates(self, make_item, open_thresholds):
        items = [make_item(s, s, thresholds=open_thresholds) for s in (10, 20, 30, 40, 50)]
        winners = rank_top_candidates(items, COMPARE, top_n=2)
        assert len(winners) == 2
        assert len({id(w) for w in winners}) == 2

    def test_tie_break_dimension(self, make_item, open_thresholds):
        # Equal playoff scores on A only; B decides
        low_b = make_item(50, 10, item_id="low_b", thresholds=open_thresholds)
        high_b = make_item(50, 30, item_id="high_b", thresholds=open_thresholds)
        winners = rank_top_candidates([low_b, high_b], ["A"], top_n=2, tie_break_key="B")
        assert [w.id for w in winners] == ["high_b", "low_b"]

    def test_composite_breaks_remaining_ties(self, make_item, open_thresholds):
        first = make_item(50, 10, item_id="first", thresholds=open_thresholds)
        second = make_item(50, 90, item_id="second", thresholds=open_thresholds)
        winners = rank_top_candidates([first, second], ["A"], top_n=2)
        assert winners[0].id == "second"
