"""
Resolve raw names from ranking lists to canonical figure ids.

The cascade is tried in order and the first stage that matches wins:

1. Compound override (one phrase naming several figures)
2. Exact slug
3. Alias table, over every deterministic alias variant
4. Normalized canonical name
5. Last name, for single-token input (first figure in snapshot order)
6. Fuzzy canonical name, unique minimum edit distance within a threshold

The resolver only reads from its snapshot, so repeated calls with the
same input and snapshot always return the same answer.
"""

import logging
from typing import Optional

from .errors import AmbiguousMatchError, UnresolvedNameError
from .models import Resolution, ResolutionStage
from .normalization import alias_variants, generate_slug, levenshtein, normalize
from .snapshot import FigureSnapshot

logger = logging.getLogger(__name__)

# Names up to this length (normalized) get the tighter fuzzy threshold
SHORT_NAME_LENGTH = 10
SHORT_NAME_MAX_DISTANCE = 2
LONG_NAME_MAX_DISTANCE = 3


def fuzzy_threshold(normalized_name: str) -> int:
    """Maximum edit distance accepted for a fuzzy match of this name."""
    if len(normalized_name) <= SHORT_NAME_LENGTH:
        return SHORT_NAME_MAX_DISTANCE
    return LONG_NAME_MAX_DISTANCE


class AliasResolver:
    """Maps raw names to figure ids against a FigureSnapshot."""

    def __init__(self, snapshot: FigureSnapshot):
        self.snapshot = snapshot

    def resolve(self, raw_name: Optional[str]) -> list[str]:
        """Figure ids for a raw name; empty when nothing matches confidently."""
        return self.resolve_with_stage(raw_name).figure_ids

    def resolve_or_raise(self, raw_name: str) -> list[str]:
        """
        Like resolve(), but raise instead of returning an empty list.

        Raises:
            AmbiguousMatchError: several figures tie at the best fuzzy distance
            UnresolvedNameError: no stage matched
        """
        resolution = self.resolve_with_stage(raw_name)
        if resolution.stage == ResolutionStage.AMBIGUOUS:
            raise AmbiguousMatchError(raw_name, self._fuzzy_ties(normalize(raw_name)), resolution.distance or 0)
        if not resolution.figure_ids:
            raise UnresolvedNameError(raw_name)
        return resolution.figure_ids

    def resolve_with_stage(self, raw_name: Optional[str]) -> Resolution:
        raw = (raw_name or "").strip()
        normalized = normalize(raw)
        if not normalized:
            return Resolution(raw_name=raw)

        snap = self.snapshot

        # 1. Compound override
        compound = snap.compound_names.get(normalized)
        if compound:
            live = [fid for fid in compound if fid in snap.ids]
            if live:
                return Resolution(raw_name=raw, figure_ids=live, stage=ResolutionStage.COMPOUND)
            logger.debug(f"Compound override for '{raw}' names no live figures")

        # 2. Exact slug
        slug = generate_slug(raw)
        if slug in snap.ids:
            return Resolution(raw_name=raw, figure_ids=[slug], stage=ResolutionStage.SLUG)

        # 3. Alias variants
        for variant in alias_variants(raw):
            figure_id = snap.aliases.get(variant)
            if figure_id is not None and figure_id in snap.ids:
                return Resolution(raw_name=raw, figure_ids=[figure_id], stage=ResolutionStage.ALIAS)

        # 4. Normalized canonical name, first in snapshot order
        for figure, name in zip(snap.figures, snap.normalized_names):
            if name == normalized:
                return Resolution(raw_name=raw, figure_ids=[figure.id], stage=ResolutionStage.CANONICAL)

        # 5. Single-token last name, first in snapshot order
        if " " not in normalized:
            for figure, last in zip(snap.figures, snap.last_tokens):
                if last == normalized:
                    return Resolution(raw_name=raw, figure_ids=[figure.id], stage=ResolutionStage.LAST_NAME)

        # 6. Fuzzy
        return self._fuzzy(raw, normalized)

    def _distances(self, normalized: str) -> list[tuple[int, str]]:
        threshold = fuzzy_threshold(normalized)
        scored = []
        for figure, name in zip(self.snapshot.figures, self.snapshot.normalized_names):
            # Length difference is a lower bound on edit distance
            if abs(len(name) - len(normalized)) > threshold:
                continue
            distance = levenshtein(normalized, name, threshold)
            if distance <= threshold:
                scored.append((distance, figure.id))
        return scored

    def _fuzzy_ties(self, normalized: str) -> list[str]:
        scored = self._distances(normalized)
        if not scored:
            return []
        best = min(d for d, _ in scored)
        return [fid for d, fid in scored if d == best]

    def _fuzzy(self, raw: str, normalized: str) -> Resolution:
        scored = self._distances(normalized)
        if not scored:
            return Resolution(raw_name=raw)

        best = min(d for d, _ in scored)
        winners = [fid for d, fid in scored if d == best]
        if len(winners) == 1:
            return Resolution(raw_name=raw, figure_ids=winners, stage=ResolutionStage.FUZZY, distance=best)

        logger.debug(f"Ambiguous fuzzy match for '{raw}' at distance {best}: {winners}")
        return Resolution(raw_name=raw, stage=ResolutionStage.AMBIGUOUS, distance=best)
