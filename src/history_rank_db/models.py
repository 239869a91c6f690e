"""
Pydantic models for figures, rankings, aliases and pipeline results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (stored in TEXT columns)."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ResolutionStage(str, Enum):
    """Resolver cascade stage that produced (or failed to produce) a match."""

    COMPOUND = "compound"
    SLUG = "slug"
    ALIAS = "alias"
    CANONICAL = "canonical"
    LAST_NAME = "last_name"
    FUZZY = "fuzzy"
    AMBIGUOUS = "ambiguous"
    UNMATCHED = "unmatched"


class CandidateRule(str, Enum):
    """Detector rule that flagged a candidate pair."""

    SUBSTRING = "substring"
    TOKEN_OVERLAP = "token_overlap"
    EDIT_DISTANCE = "edit_distance"


class FigureRecord(BaseModel):
    """A canonical historical figure (one row of the figures table)."""

    id: str = Field(description="Slug identifier, immutable once assigned")
    canonical_name: str = Field(description="Display name")
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    domain: Optional[str] = None
    occupation: Optional[str] = None
    era: Optional[str] = None
    region_macro: Optional[str] = None
    region_sub: Optional[str] = None
    birth_polity: Optional[str] = None
    birth_place: Optional[str] = None
    birth_lat: Optional[float] = None
    birth_lon: Optional[float] = None
    wikipedia_slug: Optional[str] = None
    wikipedia_extract: Optional[str] = None
    wikidata_qid: Optional[str] = None
    hpi_rank: Optional[int] = Field(default=None, description="Academic popularity index rank")
    hpi_score: Optional[float] = Field(default=None, description="Academic popularity index score")
    pageviews_2024: Optional[int] = None
    pageviews_2025: Optional[int] = None
    llm_consensus_rank: Optional[float] = Field(default=None, description="Derived consensus rank")
    variance_score: Optional[float] = Field(default=None, description="Derived disagreement score, 0-1")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "FigureRecord":
        """Build from a sqlite3.Row (or any mapping with matching keys)."""
        keys = row.keys()
        return cls(**{name: row[name] for name in cls.model_fields if name in keys})

    def model_dump_for_db(self) -> dict[str, Any]:
        """Column values for INSERT, excluding derived timestamps."""
        data = self.model_dump()
        data.pop("created_at")
        data.pop("updated_at")
        return data


class RankingRecord(BaseModel):
    """One source's placement of one figure in one sample list."""

    figure_id: str
    source: str
    sample_id: Optional[str] = None
    rank: int
    contribution: Optional[str] = None
    raw_name: str
    id: Optional[int] = None
    imported_at: Optional[str] = None


class NameAlias(BaseModel):
    """A normalized alias string mapped to exactly one figure."""

    alias: str
    figure_id: str


class RankingEntry(BaseModel):
    """A single row of a per-source ranking file."""

    rank: int
    name: str
    contribution: Optional[str] = None


class Resolution(BaseModel):
    """Outcome of resolving one raw name."""

    raw_name: str
    figure_ids: list[str] = Field(default_factory=list)
    stage: ResolutionStage = ResolutionStage.UNMATCHED
    distance: Optional[int] = Field(default=None, description="Edit distance for fuzzy matches")

    @property
    def matched(self) -> bool:
        return bool(self.figure_ids)


class CandidatePair(BaseModel):
    """Two figures that may describe the same person."""

    id_a: str
    name_a: str
    id_b: str
    name_b: str
    rank_a: Optional[float] = None
    rank_b: Optional[float] = None
    slug_a: Optional[str] = None
    slug_b: Optional[str] = None
    hpi_a: Optional[int] = None
    hpi_b: Optional[int] = None
    rule: CandidateRule
    safe: bool = False

    @classmethod
    def from_figures(cls, a: FigureRecord, b: FigureRecord, rule: CandidateRule, safe: bool) -> "CandidatePair":
        return cls(
            id_a=a.id,
            name_a=a.canonical_name,
            id_b=b.id,
            name_b=b.canonical_name,
            rank_a=a.llm_consensus_rank,
            rank_b=b.llm_consensus_rank,
            slug_a=a.wikipedia_slug,
            slug_b=b.wikipedia_slug,
            hpi_a=a.hpi_rank,
            hpi_b=b.hpi_rank,
            rule=rule,
            safe=safe,
        )


class MergeOutcome(BaseModel):
    """Result of merging one confirmed duplicate pair."""

    primary_id: str
    secondary_id: str
    copied_fields: list[str] = Field(default_factory=list)
    rankings_moved: int = 0
    rankings_dropped: int = 0
    aliases_moved: int = 0
    needs_consensus: bool = True


class MergeBatchSummary(BaseModel):
    """Per-run counts for a batch of merges."""

    merged: list[MergeOutcome] = Field(default_factory=list)
    skipped: list[tuple[str, str]] = Field(default_factory=list)

    @property
    def survivors(self) -> list[str]:
        """Surviving ids whose consensus must be recomputed, in merge order."""
        absorbed = {outcome.secondary_id for outcome in self.merged}
        seen: dict[str, None] = {}
        for outcome in self.merged:
            if outcome.primary_id not in absorbed:
                seen[outcome.primary_id] = None
        return list(seen)


class ConsensusResult(BaseModel):
    """Consensus rank and disagreement score for one figure."""

    figure_id: str
    consensus_rank: float
    variance_score: float
    source_averages: dict[str, float] = Field(default_factory=dict)
    sample_count: int = 0


class DatabaseStats(BaseModel):
    """Row counts for the figures database."""

    figures: int = 0
    rankings: int = 0
    aliases: int = 0
    sources: dict[str, int] = Field(default_factory=dict)
    figures_with_consensus: int = 0
    database_size_bytes: int = 0
