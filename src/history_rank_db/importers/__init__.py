"""
Importers for the figure dataset and per-source ranking lists.
"""

from .figures import FigureImporter, FigureImportResult
from .rankings import (
    ImportFileResult,
    ImportRunSummary,
    ParsedRankingFile,
    RankingFileSpec,
    RankingImporter,
    UnmatchedCandidate,
    UnmatchedName,
    aggregate_unmatched,
    detect_ranking_files,
    parse_ranking_text,
    write_unmatched_candidates,
    write_unmatched_report,
)

__all__ = [
    "FigureImporter",
    "FigureImportResult",
    "ImportFileResult",
    "ImportRunSummary",
    "ParsedRankingFile",
    "RankingFileSpec",
    "RankingImporter",
    "UnmatchedCandidate",
    "UnmatchedName",
    "aggregate_unmatched",
    "detect_ranking_files",
    "parse_ranking_text",
    "write_unmatched_candidates",
    "write_unmatched_report",
]
