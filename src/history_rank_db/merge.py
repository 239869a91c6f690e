"""
Merging confirmed duplicate figures into a single survivor.

The survivor (primary) is the more complete record. Empty fields on the
primary are filled from the secondary, rankings and aliases are re-pointed,
both canonical names become aliases of the primary, and the secondary is
deleted. Each merge is a single transaction.

A resolver snapshot handed to MergeResolver is reloaded after merges so
that later lookups never return a deleted id.
"""

import logging
import math
from typing import Any, Iterable, Optional

from .errors import StaleMergeTargetError
from .models import FigureRecord, MergeBatchSummary, MergeOutcome
from .normalization import normalize
from .snapshot import FigureSnapshot
from .store import FigureDatabase

logger = logging.getLogger(__name__)

# Field weights for completeness_score
SCORE_WEIGHTS: dict[str, int] = {
    "wikipedia_slug": 5,
    "hpi_rank": 3,
    "hpi_score": 2,
    "birth_year": 1,
    "death_year": 1,
    "domain": 1,
    "era": 1,
    "region_sub": 1,
    "region_macro": 1,
    "pageviews_2024": 1,
    "pageviews_2025": 1,
    "llm_consensus_rank": 1,
}

# Birth coordinates count once, and only as a pair
COORDINATES_WEIGHT = 1

# Fields copied from the secondary when the primary lacks them
MERGEABLE_FIELDS: tuple[str, ...] = (
    "birth_year",
    "death_year",
    "domain",
    "occupation",
    "era",
    "region_macro",
    "region_sub",
    "birth_polity",
    "birth_place",
    "birth_lat",
    "birth_lon",
    "wikipedia_slug",
    "wikipedia_extract",
    "wikidata_qid",
    "pageviews_2024",
    "pageviews_2025",
    "hpi_rank",
    "hpi_score",
)


def has_value(value: Any) -> bool:
    """Present and, for strings, non-blank."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def completeness_score(figure: FigureRecord) -> int:
    """Weighted count of populated attributes."""
    score = sum(weight for field, weight in SCORE_WEIGHTS.items() if has_value(getattr(figure, field)))
    if has_value(figure.birth_lat) and has_value(figure.birth_lon):
        score += COORDINATES_WEIGHT
    return score


def _rank_key(value: Optional[float]) -> float:
    return math.inf if value is None else value


def choose_primary(a: FigureRecord, b: FigureRecord) -> FigureRecord:
    """
    Pick the survivor of a duplicate pair.

    Higher completeness wins, then the better (lower) consensus rank, then
    the better HPI rank, then the lexicographically smaller id. The result
    does not depend on argument order.
    """
    score_a, score_b = completeness_score(a), completeness_score(b)
    if score_a != score_b:
        return a if score_a > score_b else b

    llm_a, llm_b = _rank_key(a.llm_consensus_rank), _rank_key(b.llm_consensus_rank)
    if llm_a != llm_b:
        return a if llm_a < llm_b else b

    hpi_a, hpi_b = _rank_key(a.hpi_rank), _rank_key(b.hpi_rank)
    if hpi_a != hpi_b:
        return a if hpi_a < hpi_b else b

    return a if a.id <= b.id else b


def merge_figure_fields(primary: FigureRecord, secondary: FigureRecord) -> dict[str, Any]:
    """Fields the primary lacks and the secondary has, with the secondary's values."""
    updates: dict[str, Any] = {}
    for field in MERGEABLE_FIELDS:
        if not has_value(getattr(primary, field)) and has_value(getattr(secondary, field)):
            updates[field] = getattr(secondary, field)
    return updates


class MergeResolver:
    """Applies duplicate merges to a writable FigureDatabase."""

    def __init__(self, db: FigureDatabase, snapshot: Optional[FigureSnapshot] = None):
        self.db = db
        self.snapshot = snapshot

    def _reload_snapshot(self) -> None:
        if self.snapshot is not None:
            self.snapshot.reload()
            logger.debug(f"Reloaded snapshot: {len(self.snapshot)} figures")

    def _load(self, figure_id: str) -> FigureRecord:
        figure = self.db.get_figure(figure_id)
        if figure is None:
            raise StaleMergeTargetError(figure_id)
        return figure

    def merge(self, id_a: str, id_b: str, primary_id: Optional[str] = None) -> MergeOutcome:
        """Merge two figures (see _merge), then reload the snapshot if one was given."""
        outcome = self._merge(id_a, id_b, primary_id)
        self._reload_snapshot()
        return outcome

    def _merge(self, id_a: str, id_b: str, primary_id: Optional[str] = None) -> MergeOutcome:
        """
        Merge two figures without touching the snapshot.

        Args:
            id_a: First figure id
            id_b: Second figure id
            primary_id: Force this id to survive (must be id_a or id_b);
                        by default choose_primary() decides.

        Returns:
            MergeOutcome describing what moved

        Raises:
            StaleMergeTargetError: either figure no longer exists, or the ids are equal
        """
        if id_a == id_b:
            raise StaleMergeTargetError(id_a)
        if primary_id is not None and primary_id not in (id_a, id_b):
            raise ValueError(f"primary_id '{primary_id}' must be one of '{id_a}', '{id_b}'")

        fig_a = self._load(id_a)
        fig_b = self._load(id_b)

        if primary_id is None:
            primary = choose_primary(fig_a, fig_b)
        else:
            primary = fig_a if primary_id == id_a else fig_b
        secondary = fig_b if primary is fig_a else fig_a

        updates = merge_figure_fields(primary, secondary)

        with self.db.transaction():
            if updates:
                self.db.update_figure_fields(primary.id, updates)
            moved, dropped = self.db.reassign_rankings(secondary.id, primary.id)
            aliases_moved = self.db.reassign_aliases(secondary.id, primary.id)
            for name in (primary.canonical_name, secondary.canonical_name):
                self.db.add_alias(normalize(name), primary.id, replace=True)
            self.db.delete_figure(secondary.id)

        logger.info(
            f"Merged {secondary.id} into {primary.id}: {len(updates)} fields, "
            f"{moved} rankings moved, {dropped} dropped, {aliases_moved} aliases moved"
        )
        return MergeOutcome(
            primary_id=primary.id,
            secondary_id=secondary.id,
            copied_fields=sorted(updates),
            rankings_moved=moved,
            rankings_dropped=dropped,
            aliases_moved=aliases_moved,
        )

    def merge_batch(
        self,
        pairs: Iterable[tuple[str, str]],
        forced_primary: bool = False,
    ) -> MergeBatchSummary:
        """
        Merge pairs in order, skipping any that earlier merges made stale.

        Args:
            pairs: (id_a, id_b) tuples
            forced_primary: If True, id_a of each pair always survives

        Returns:
            MergeBatchSummary with merged outcomes, skipped pairs and survivors
        """
        summary = MergeBatchSummary()
        for id_a, id_b in pairs:
            try:
                outcome = self._merge(id_a, id_b, primary_id=id_a if forced_primary else None)
            except StaleMergeTargetError as e:
                logger.warning(f"Skipping merge {id_a} + {id_b}: {e}")
                summary.skipped.append((id_a, id_b))
                continue
            summary.merged.append(outcome)

        if summary.merged:
            self._reload_snapshot()
        logger.info(f"Merge batch: {len(summary.merged)} merged, {len(summary.skipped)} skipped")
        return summary
