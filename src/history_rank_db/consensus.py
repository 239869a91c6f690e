"""
Cross-source consensus rank and disagreement score.

Each source is first averaged over its own samples so a source with many
sample lists counts the same as a source with one. The consensus rank is the
mean of those per-source averages; the variance score is their coefficient
of variation (population standard deviation over mean), clamped to [0, 1].
"""

import logging
from collections import defaultdict
from typing import AbstractSet, Iterable, Optional

import numpy as np

from .models import ConsensusResult, RankingRecord
from .store import FigureDatabase

logger = logging.getLogger(__name__)

# Authoritative datasets stored as rankings but not part of the LLM consensus
DEFAULT_EXCLUDED_SOURCES: frozenset[str] = frozenset({"pantheon"})


def compute_consensus(
    rows: Iterable[RankingRecord],
    excluded_sources: AbstractSet[str] = DEFAULT_EXCLUDED_SOURCES,
) -> Optional[ConsensusResult]:
    """
    Compute consensus for one figure's ranking rows.

    Returns:
        ConsensusResult, or None when no rows remain after exclusions
    """
    by_source: dict[str, list[int]] = defaultdict(list)
    figure_id = None
    for row in rows:
        if row.source in excluded_sources:
            continue
        figure_id = figure_id or row.figure_id
        by_source[row.source].append(row.rank)

    if not by_source:
        return None

    sources = sorted(by_source)
    averages = np.array([np.mean(by_source[s]) for s in sources], dtype=np.float64)
    mean = float(averages.mean())

    if len(averages) > 1 and mean > 0:
        variance = float(np.clip(averages.std() / mean, 0.0, 1.0))
    else:
        variance = 0.0

    return ConsensusResult(
        figure_id=figure_id,
        consensus_rank=round(mean, 1),
        variance_score=round(variance, 3),
        source_averages={s: float(avg) for s, avg in zip(sources, averages)},
        sample_count=sum(len(ranks) for ranks in by_source.values()),
    )


class ConsensusCalculator:
    """Recomputes and persists consensus values on figures."""

    def __init__(
        self,
        db: FigureDatabase,
        excluded_sources: AbstractSet[str] = DEFAULT_EXCLUDED_SOURCES,
    ):
        self.db = db
        self.excluded_sources = frozenset(excluded_sources)

    def recompute(self, figure_id: str) -> Optional[ConsensusResult]:
        """Recompute one figure; clears its values when it has no usable rankings."""
        result = compute_consensus(self.db.get_rankings(figure_id), self.excluded_sources)
        if result is None:
            self.db.set_consensus(figure_id, None, None)
        else:
            self.db.set_consensus(figure_id, result.consensus_rank, result.variance_score)
        return result

    def recompute_many(self, figure_ids: Iterable[str]) -> list[ConsensusResult]:
        results = []
        with self.db.transaction():
            for figure_id in figure_ids:
                result = self.recompute(figure_id)
                if result is not None:
                    results.append(result)
        return results

    def recompute_all(self) -> list[ConsensusResult]:
        """
        Clear every stored consensus value, then recompute every figure that
        has rankings. Runs as one transaction.
        """
        with self.db.transaction():
            cleared = self.db.clear_consensus()
            logger.debug(f"Cleared consensus on {cleared} figures")

            rankings: dict[str, list[RankingRecord]] = defaultdict(list)
            for row in self.db.iter_rankings():
                rankings[row.figure_id].append(row)

            results = []
            for figure_id, rows in rankings.items():
                result = compute_consensus(rows, self.excluded_sources)
                if result is None:
                    continue
                self.db.set_consensus(figure_id, result.consensus_rank, result.variance_score)
                results.append(result)

        logger.info(f"Recalculated consensus for {len(results)} figures")
        return results
