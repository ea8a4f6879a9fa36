# curation/scoring/tournament.py
"""
Tournament Ranker
-----------------
Round-robin playoff over the strongest non-excluded items of a batch.

    pool          = top min(pool_size, eligible) items by authoritative composite
    for each ordered pair (i, j), i ≠ j, and each compare key k:
        raw_i[k] > raw_j[k]  → i gains a win
        raw_i[k] < raw_j[k]  → i gains a loss
        equal                → nothing
    playoff_score = wins − losses

Sort: playoff_score desc, tie-break dimension raw desc, authoritative
composite desc, then input order.
"""
from typing import List, Optional, Sequence

import structlog

from curation.models.enumerations import Verdict
from curation.scoring.scorer import ScoredItem

logger = structlog.get_logger(__name__)

DEFAULT_POOL_SIZE = 40


def rank_top_candidates(
    items: Sequence[ScoredItem],
    compare_keys: Sequence[str],
    top_n: int,
    pool_size: int = DEFAULT_POOL_SIZE,
    tie_break_key: Optional[str] = None,
) -> List[ScoredItem]:
    """
    Run the playoff and return the best top_n items.

    Every pool item gets pairwise_wins, pairwise_losses, playoff_score and a
    1-based rank; items outside the pool are left untouched. The returned list
    holds references to the input items, without duplicates.
    """
    if top_n <= 0 or pool_size <= 0:
        return []

    eligible = [
        (index, item) for index, item in enumerate(items) if item.verdict != Verdict.EXCLUDE
    ]
    if not eligible:
        return []

    eligible.sort(key=lambda pair: (-pair[1].authoritative_composite, pair[0]))
    pool = eligible[: min(pool_size, len(eligible))]

    for _, item in pool:
        wins = losses = 0
        for _, other in pool:
            if other is item:
                continue
            for key in compare_keys:
                mine, theirs = item.raw_score(key), other.raw_score(key)
                if mine > theirs:
                    wins += 1
                elif mine < theirs:
                    losses += 1
        item.pairwise_wins = wins
        item.pairwise_losses = losses
        item.playoff_score = wins - losses

    def sort_key(pair):
        index, item = pair
        tie_break = item.raw_score(tie_break_key) if tie_break_key else 0.0
        return (-item.playoff_score, -tie_break, -item.authoritative_composite, index)

    pool.sort(key=sort_key)
    for rank, (_, item) in enumerate(pool, start=1):
        item.rank = rank

    winners = [item for _, item in pool[:top_n]]
    logger.info(
        "playoff_ranked",
        eligible=len(eligible),
        pool=len(pool),
        top_n=top_n,
        compare_keys=list(compare_keys),
        leader=winners[0].id if winners else None,
    )
    return winners
