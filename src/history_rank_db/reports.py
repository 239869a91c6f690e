"""
CSV reports for duplicate candidates.

find-duplicates writes two files to the reports directory: every candidate
pair, and the subset that is safe to merge automatically. merge-safe reads
the second one back.
"""

import csv
import logging
from pathlib import Path
from typing import Iterable, Optional

from .detector import DuplicateReport
from .errors import ConfigurationError
from .models import CandidatePair

logger = logging.getLogger(__name__)

REPORTS_DIR_NAME = "reports"

REPORT_COLUMNS = [
    "id_a", "name_a", "id_b", "name_b",
    "a_rank", "b_rank", "a_slug", "b_slug", "a_hpi", "b_hpi",
    "rule",
]


def candidates_filename(top_k: int) -> str:
    return f"top-{top_k}-duplicate-candidates.csv"


def safe_filename(top_k: int) -> str:
    return f"top-{top_k}-duplicate-safe.csv"


def _blank(value: Optional[object]) -> object:
    return "" if value is None else value


def write_pairs_csv(pairs: Iterable[CandidatePair], path: Path) -> int:
    """Write candidate pairs as CSV. Returns the number of rows written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(REPORT_COLUMNS)
        for p in pairs:
            writer.writerow([
                p.id_a, p.name_a, p.id_b, p.name_b,
                _blank(p.rank_a), _blank(p.rank_b),
                _blank(p.slug_a), _blank(p.slug_b),
                _blank(p.hpi_a), _blank(p.hpi_b),
                p.rule.value,
            ])
            count += 1
    return count


def write_duplicate_reports(report: DuplicateReport, out_dir: Path) -> tuple[Path, Path]:
    """Write the candidate and safe CSVs; returns their paths."""
    out_dir = Path(out_dir)
    candidates_path = out_dir / candidates_filename(report.top_k)
    safe_path = out_dir / safe_filename(report.top_k)
    n_candidates = write_pairs_csv(report.candidates, candidates_path)
    n_safe = write_pairs_csv(report.safe_pairs, safe_path)
    logger.info(f"Wrote {n_candidates} candidate pairs to {candidates_path}")
    logger.info(f"Wrote {n_safe} safe pairs to {safe_path}")
    return candidates_path, safe_path


def read_pairs_csv(path: Path) -> list[tuple[str, str]]:
    """
    Read (id_a, id_b) pairs back from a report.

    Raises:
        ConfigurationError: report missing or lacking id columns
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError("Duplicate report not found", path)

    pairs = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or "id_a" not in reader.fieldnames or "id_b" not in reader.fieldnames:
            raise ConfigurationError("Report is missing id_a/id_b columns", path)
        for row in reader:
            id_a, id_b = (row.get("id_a") or "").strip(), (row.get("id_b") or "").strip()
            if id_a and id_b:
                pairs.append((id_a, id_b))
    logger.debug(f"Read {len(pairs)} pairs from {path}")
    return pairs
