"""
Per-source ranking list importer.

Ranking files are free text produced by language models, one file per
(model, sample) named like ``"Claude Opus LIST 3 (2025-01-12).txt"``. A file
may contain prose plus one or more JSON arrays of
``{"rank": int, "name": str, "contribution": str}`` objects; every
top-level array is parsed and the entries are merged.

Import flow:
1. Detect ranking files in the data directory
2. Parse each file into deduplicated, rank-sorted entries
3. Resolve each name to one or more figure ids
4. Insert ranking rows and an import log row; collect unmatched names
"""

import csv
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from ..errors import MalformedInputError
from ..models import RankingEntry, RankingRecord, ResolutionStage, utc_now_iso
from ..normalization import normalize
from ..resolver import AliasResolver
from ..store import FigureDatabase

logger = logging.getLogger(__name__)

RAW_DIR_NAME = "raw"

RANKING_FILE_PATTERN = re.compile(r"^(.+?)\s+LIST\s+(\d+)\s*\(.*\)\.txt$", re.IGNORECASE)


@dataclass(frozen=True)
class RankingFileSpec:
    """A detected ranking file and the source/sample it belongs to."""
    path: Path
    source: str
    sample_id: str


@dataclass
class ParsedRankingFile:
    """Entries recovered from one ranking file, plus what had to be skipped."""
    entries: list[RankingEntry] = field(default_factory=list)
    arrays_found: int = 0
    malformed_arrays: int = 0
    malformed_rows: int = 0
    duplicate_rows: int = 0


@dataclass(frozen=True)
class UnmatchedName:
    """A ranking entry no resolver stage could place."""
    source: str
    sample_id: str
    rank: int
    name: str
    ambiguous: bool = False

    def as_line(self) -> str:
        return f"{self.rank}. {self.name}"


@dataclass
class ImportFileResult:
    """Outcome of importing a single ranking file."""
    spec: RankingFileSpec
    entries: int = 0
    matched: int = 0
    rows_inserted: int = 0
    malformed_rows: int = 0
    malformed_arrays: int = 0
    unmatched: list[UnmatchedName] = field(default_factory=list)
    stages: dict[str, int] = field(default_factory=dict)


@dataclass
class ImportRunSummary:
    """Totals across a whole import run."""
    files: list[ImportFileResult] = field(default_factory=list)
    failed_files: list[Path] = field(default_factory=list)
    cleared_rows: int = 0

    @property
    def entries(self) -> int:
        return sum(f.entries for f in self.files)

    @property
    def matched(self) -> int:
        return sum(f.matched for f in self.files)

    @property
    def rows_inserted(self) -> int:
        return sum(f.rows_inserted for f in self.files)

    @property
    def unmatched(self) -> list[UnmatchedName]:
        return [u for f in self.files for u in f.unmatched]

    @property
    def sources(self) -> list[str]:
        return sorted({f.spec.source for f in self.files})


@dataclass
class UnmatchedCandidate:
    """An unmatched name aggregated across every list that mentioned it."""
    normalized_name: str
    display_name: str
    sources: set[str] = field(default_factory=set)
    sample_count: int = 0
    total_rank: int = 0

    @property
    def avg_rank(self) -> float:
        return self.total_rank / self.sample_count if self.sample_count else 0.0


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------


def _iter_json_arrays(text: str) -> Iterable[str]:
    """
    Yield every top-level ``[...]`` span, skipping brackets inside strings.

    Scanning stops at the first array that is never closed.
    """
    search_start = 0
    while True:
        start = text.find("[", search_start)
        if start == -1:
            return

        depth = 0
        end = -1
        in_string = False
        escape = False
        for i in range(start, len(text)):
            char = text[i]
            if escape:
                escape = False
                continue
            if char == "\\" and in_string:
                escape = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if not in_string:
                if char == "[":
                    depth += 1
                elif char == "]":
                    depth -= 1
                    if depth == 0:
                        end = i + 1
                        break

        if end == -1:
            return
        yield text[start:end]
        search_start = end


def _parse_entry(item: Any) -> RankingEntry:
    """Validate one array element; raise MalformedInputError on a bad shape."""
    if not isinstance(item, dict):
        raise MalformedInputError(f"Expected an object, got {type(item).__name__}")
    rank = item.get("rank")
    if not isinstance(rank, int) or isinstance(rank, bool):
        raise MalformedInputError(f"Invalid rank: {rank!r}")
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MalformedInputError(f"Invalid name: {name!r}")
    contribution = item.get("contribution", item.get("primary_contribution"))
    if contribution is not None and not isinstance(contribution, str):
        contribution = str(contribution)
    return RankingEntry(rank=rank, name=name.strip(), contribution=contribution)


def parse_ranking_text(text: str) -> ParsedRankingFile:
    """
    Extract ranking entries from free text containing JSON arrays.

    Arrays that fail to parse and rows with the wrong shape are skipped and
    counted. Entries are deduplicated by rank and by normalized name (first
    occurrence wins) and returned sorted by rank.
    """
    parsed = ParsedRankingFile()
    seen_ranks: set[int] = set()
    seen_names: set[str] = set()

    for chunk in _iter_json_arrays(text):
        parsed.arrays_found += 1
        try:
            items = json.loads(chunk)
        except json.JSONDecodeError as e:
            parsed.malformed_arrays += 1
            logger.warning(f"Skipping unparsable JSON array: {e}")
            continue

        for item in items:
            try:
                entry = _parse_entry(item)
            except MalformedInputError as e:
                parsed.malformed_rows += 1
                logger.debug(f"Skipping malformed row: {e}")
                continue

            key = normalize(entry.name)
            if entry.rank in seen_ranks or key in seen_names:
                parsed.duplicate_rows += 1
                continue
            seen_ranks.add(entry.rank)
            seen_names.add(key)
            parsed.entries.append(entry)

    parsed.entries.sort(key=lambda e: e.rank)
    return parsed


def detect_ranking_files(directory: Path) -> list[RankingFileSpec]:
    """
    Find ranking files in a directory.

    Source is the model name lowercased with whitespace runs replaced by
    "-"; sample id is "list-<n>". Sorted by (source, sample_id).
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"Ranking directory not found: {directory}")
        return []

    specs = []
    for path in directory.iterdir():
        match = RANKING_FILE_PATTERN.match(path.name)
        if not match or not path.is_file():
            continue
        source = re.sub(r"\s+", "-", match.group(1).strip().lower())
        specs.append(RankingFileSpec(path=path, source=source, sample_id=f"list-{match.group(2)}"))

    specs.sort(key=lambda s: (s.source, s.sample_id))
    logger.debug(f"Detected {len(specs)} ranking files in {directory}")
    return specs


# ----------------------------------------------------------------------
# Import
# ----------------------------------------------------------------------


class RankingImporter:
    """Resolves ranking entries and writes them to the figure database."""

    def __init__(self, db: FigureDatabase, resolver: AliasResolver):
        self.db = db
        self.resolver = resolver

    def import_entries(self, spec: RankingFileSpec, parsed: ParsedRankingFile) -> ImportFileResult:
        """Resolve and insert already-parsed entries for one source/sample."""
        result = ImportFileResult(
            spec=spec,
            entries=len(parsed.entries),
            malformed_rows=parsed.malformed_rows,
            malformed_arrays=parsed.malformed_arrays,
        )
        imported_at = utc_now_iso()

        with self.db.transaction():
            for entry in parsed.entries:
                resolution = self.resolver.resolve_with_stage(entry.name)
                stage = resolution.stage.value
                result.stages[stage] = result.stages.get(stage, 0) + 1

                if not resolution.figure_ids:
                    result.unmatched.append(
                        UnmatchedName(
                            source=spec.source,
                            sample_id=spec.sample_id,
                            rank=entry.rank,
                            name=entry.name,
                            ambiguous=resolution.stage == ResolutionStage.AMBIGUOUS,
                        )
                    )
                    continue

                result.matched += 1
                # Compound names produce one row per figure
                for figure_id in resolution.figure_ids:
                    inserted = self.db.insert_ranking(
                        RankingRecord(
                            figure_id=figure_id,
                            source=spec.source,
                            sample_id=spec.sample_id,
                            rank=entry.rank,
                            contribution=entry.contribution,
                            raw_name=entry.name,
                            imported_at=imported_at,
                        )
                    )
                    if inserted:
                        result.rows_inserted += 1

            self.db.log_import(
                spec.source,
                spec.sample_id,
                spec.path.name,
                record_count=result.matched,
                unmatched_count=len(result.unmatched),
            )

        logger.info(
            f"{spec.source}/{spec.sample_id}: matched {result.matched}/{result.entries}, "
            f"unmatched {len(result.unmatched)}"
        )
        return result

    def import_file(self, spec: RankingFileSpec) -> ImportFileResult:
        """
        Parse and import one ranking file.

        Raises:
            MalformedInputError: the file is unreadable, not UTF-8, or holds
                                 no usable entries
        """
        try:
            text = spec.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"{spec.path.name} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise MalformedInputError(f"Cannot read {spec.path.name}: {e}") from e
        parsed = parse_ranking_text(text)
        if not parsed.entries:
            raise MalformedInputError(f"No valid ranking entries in {spec.path.name}")
        return self.import_entries(spec, parsed)

    def import_all(self, specs: Iterable[RankingFileSpec], clear_existing: bool = True) -> ImportRunSummary:
        """
        Import every file, optionally clearing all rankings first.

        Files that cannot be read or hold no usable entries are logged and
        listed in failed_files. The clear and every import commit together.
        """
        summary = ImportRunSummary()
        with self.db.transaction():
            if clear_existing:
                summary.cleared_rows = self.db.clear_rankings()
                logger.info(f"Cleared {summary.cleared_rows} existing rankings")

            for spec in specs:
                try:
                    summary.files.append(self.import_file(spec))
                except MalformedInputError as e:
                    logger.warning(f"Skipping {spec.path.name}: {e}")
                    summary.failed_files.append(spec.path)

        logger.info(
            f"Imported {len(summary.files)} files: {summary.matched}/{summary.entries} matched, "
            f"{summary.rows_inserted} rows inserted"
        )
        return summary


# ----------------------------------------------------------------------
# Unmatched name artifacts
# ----------------------------------------------------------------------


def write_unmatched_report(results: Iterable[ImportFileResult], out_dir: Path) -> list[Path]:
    """
    Write one "<source>-<sample>-unmatched.txt" file per imported file with
    unmatched names, one "<rank>. <name>" line each.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for result in results:
        if not result.unmatched:
            continue
        path = out_dir / f"{result.spec.source}-{result.spec.sample_id}-unmatched.txt"
        lines = [u.as_line() for u in sorted(result.unmatched, key=lambda u: u.rank)]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        written.append(path)
    logger.debug(f"Wrote {len(written)} unmatched reports to {out_dir}")
    return written


def aggregate_unmatched(results: Iterable[ImportFileResult]) -> list[UnmatchedCandidate]:
    """
    Group unmatched names by normalized form across all sources.

    Sorted by number of mentions (descending), then average rank.
    """
    candidates: dict[str, UnmatchedCandidate] = {}
    for result in results:
        for unmatched in result.unmatched:
            key = normalize(unmatched.name)
            if not key:
                continue
            candidate = candidates.get(key)
            if candidate is None:
                candidate = candidates[key] = UnmatchedCandidate(normalized_name=key, display_name=unmatched.name)
            candidate.sources.add(unmatched.source)
            candidate.sample_count += 1
            candidate.total_rank += unmatched.rank

    return sorted(candidates.values(), key=lambda c: (-c.sample_count, c.avg_rank, c.normalized_name))


def write_unmatched_candidates(candidates: Iterable[UnmatchedCandidate], path: Path) -> int:
    """Write aggregated unmatched names as CSV. Returns the number of rows."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["normalized_name", "display_name", "sources", "sample_count", "avg_rank"])
        for c in candidates:
            writer.writerow([c.normalized_name, c.display_name, ";".join(sorted(c.sources)), c.sample_count, f"{c.avg_rank:.1f}"])
            count += 1
    return count

