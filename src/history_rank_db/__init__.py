"""
Canonical database of historical figures ranked by multiple LLM sources.

Imports per-source ranking lists, resolves raw names to canonical figures,
finds and merges duplicate figure records, and computes a cross-source
consensus rank with a disagreement score.
"""

__version__ = "0.1.0"

from history_rank_db.store import FigureDatabase, get_figure_database

from history_rank_db.models import (
    CandidatePair,
    CandidateRule,
    ConsensusResult,
    DatabaseStats,
    FigureRecord,
    MergeBatchSummary,
    MergeOutcome,
    NameAlias,
    RankingEntry,
    RankingRecord,
    Resolution,
    ResolutionStage,
)

from history_rank_db.errors import (
    AmbiguousMatchError,
    ConfigurationError,
    HistoryRankError,
    MalformedInputError,
    StaleMergeTargetError,
    UnresolvedNameError,
)

from history_rank_db.snapshot import FigureSnapshot
from history_rank_db.resolver import AliasResolver
from history_rank_db.detector import CandidateDetector, DuplicateReport
from history_rank_db.merge import MergeResolver, choose_primary, completeness_score, merge_figure_fields
from history_rank_db.consensus import ConsensusCalculator, compute_consensus

__all__ = [
    # Store
    "FigureDatabase",
    "get_figure_database",
    # Models
    "CandidatePair",
    "CandidateRule",
    "ConsensusResult",
    "DatabaseStats",
    "FigureRecord",
    "MergeBatchSummary",
    "MergeOutcome",
    "NameAlias",
    "RankingEntry",
    "RankingRecord",
    "Resolution",
    "ResolutionStage",
    # Errors
    "AmbiguousMatchError",
    "ConfigurationError",
    "HistoryRankError",
    "MalformedInputError",
    "StaleMergeTargetError",
    "UnresolvedNameError",
    # Resolution
    "FigureSnapshot",
    "AliasResolver",
    # Duplicates
    "CandidateDetector",
    "DuplicateReport",
    "MergeResolver",
    "choose_primary",
    "completeness_score",
    "merge_figure_fields",
    # Consensus
    "ConsensusCalculator",
    "compute_consensus",
]
