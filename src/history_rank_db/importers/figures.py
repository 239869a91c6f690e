"""
Figure dataset importer (Pantheon-style CSV).

Expected columns: Name, Slug, Occupation, Born, HPI Rank, HPI Score,
2025 Views, 2024 Views. The figure id is generate_slug(Name). New figures
are inserted with their normalized name as an alias; existing figures get
the dataset's attributes refreshed.
"""

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from ..models import FigureRecord
from ..normalization import determine_era, generate_slug, normalize, occupation_to_domain
from ..store import FigureDatabase

logger = logging.getLogger(__name__)

FIGURES_CSV_FILENAME = "attention-gap-data.csv"

FIGURE_DATASET_SOURCE = "pantheon"


@dataclass
class FigureImportResult:
    rows: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Integer from a CSV cell ("1,234" -> 1234), None when blank or malformed."""
    if value is None:
        return None
    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return int(float(cleaned))
    except ValueError:
        return None


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def figure_from_row(row: dict[str, str]) -> Optional[FigureRecord]:
    """Build a FigureRecord from one CSV row, or None if it has no usable name."""
    name = _clean(row.get("Name"))
    if not name:
        return None
    figure_id = generate_slug(name)
    if not figure_id:
        return None

    occupation = _clean(row.get("Occupation"))
    birth_year = _parse_int(row.get("Born"))
    return FigureRecord(
        id=figure_id,
        canonical_name=name,
        birth_year=birth_year,
        occupation=occupation,
        domain=occupation_to_domain(occupation),
        era=determine_era(birth_year),
        wikipedia_slug=_clean(row.get("Slug")),
        hpi_rank=_parse_int(row.get("HPI Rank")),
        hpi_score=_parse_float(row.get("HPI Score")),
        pageviews_2024=_parse_int(row.get("2024 Views")),
        pageviews_2025=_parse_int(row.get("2025 Views")),
    )


def iter_figure_rows(path: Path) -> Iterator[dict[str, str]]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        yield from csv.DictReader(f)


# Attributes the dataset owns on existing figures
_DATASET_FIELDS = (
    "birth_year",
    "occupation",
    "domain",
    "era",
    "wikipedia_slug",
    "hpi_rank",
    "hpi_score",
    "pageviews_2024",
    "pageviews_2025",
)


class FigureImporter:
    """Upserts figures from the authoritative dataset."""

    def __init__(self, db: FigureDatabase):
        self.db = db

    def import_rows(self, rows: Iterable[dict[str, Any]], filename: Optional[str] = None) -> FigureImportResult:
        result = FigureImportResult()
        with self.db.transaction():
            for row in rows:
                result.rows += 1
                record = figure_from_row(row)
                if record is None:
                    result.skipped += 1
                    logger.debug(f"Skipping row without a usable name: {row}")
                    continue

                if self.db.figure_exists(record.id):
                    # Blank cells never erase existing values
                    updates = {
                        name: getattr(record, name)
                        for name in _DATASET_FIELDS
                        if getattr(record, name) is not None
                    }
                    self.db.update_figure_fields(record.id, updates)
                    result.updated += 1
                else:
                    self.db.insert_figure(record)
                    self.db.add_alias(normalize(record.canonical_name), record.id)
                    result.inserted += 1

            self.db.log_import(
                FIGURE_DATASET_SOURCE,
                None,
                filename,
                record_count=result.inserted + result.updated,
            )

        logger.info(
            f"Figure import: {result.inserted} new, {result.updated} updated, {result.skipped} skipped"
        )
        return result

    def import_csv(self, path: Path) -> FigureImportResult:
        path = Path(path)
        logger.info(f"Importing figures from {path}")
        return self.import_rows(iter_figure_rows(path), filename=path.name)
