"""
Curation config: manual overrides and alias seed data.

The overrides file is JSON with these optional sections (keys starting
with "_" are comments and ignored everywhere):

    {
      "compound_names": {"watson and crick": ["james-watson", "francis-crick"]},
      "aliases": {"laozi": ["lao tzu", "lao-tse"]},
      "merges": {"qin-shi-huang": ["qin-shi-huangdi"]},
      "renames": {"paul-the-apostle": "Paul the Apostle"},
      "updates": {"cai-lun": {"birth_year": 50}}
    }

Alias files are plain text with one "alias<TAB>figure_id" (or comma
separated) pair per line; blank lines and "#" comments are skipped.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .consensus import ConsensusCalculator
from .errors import ConfigurationError
from .merge import MergeResolver
from .models import MergeBatchSummary
from .normalization import normalize
from .store import FigureDatabase

logger = logging.getLogger(__name__)

OVERRIDES_FILENAME = "figure-overrides.json"

# Columns a manual "updates" entry may set
UPDATABLE_FIELDS = frozenset({
    "wikipedia_slug",
    "wikidata_qid",
    "birth_year",
    "death_year",
    "birth_place",
    "birth_polity",
    "domain",
    "occupation",
    "era",
    "region_macro",
    "region_sub",
})

# Well-known name variants mapped to figure ids of the figure dataset
KNOWN_ALIASES: list[tuple[str, str]] = [
    ("jesus christ", "jesus"),
    ("jesus of nazareth", "jesus"),
    ("christ", "jesus"),
    ("siddhartha gautama", "gautama-buddha"),
    ("siddhartha gautama buddha", "gautama-buddha"),
    ("buddha", "gautama-buddha"),
    ("the buddha", "gautama-buddha"),
    ("paul of tarsus", "paul-the-apostle"),
    ("saint paul", "paul-the-apostle"),
    ("st paul the apostle", "paul-the-apostle"),
    ("apostle paul", "paul-the-apostle"),
    ("augustus caesar", "augustus"),
    ("caesar augustus", "augustus"),
    ("octavian", "augustus"),
    ("napoleon bonaparte", "napoleon"),
    ("napoleon i", "napoleon"),
    ("bonaparte", "napoleon"),
    ("ts'ai lun", "cai-lun"),
    ("ashoka the great", "ashoka"),
    ("asoka", "ashoka"),
    ("kong qiu", "confucius"),
    ("kongzi", "confucius"),
    ("master kong", "confucius"),
    ("lao tzu", "laozi"),
    ("lao tse", "laozi"),
    ("ibn sina", "avicenna"),
    ("oppenheimer", "j-robert-oppenheimer"),
    ("berners-lee", "tim-berners-lee"),
    ("umar ibn al-khattab", "umar"),
    ("saint augustine", "augustine-of-hippo"),
    ("st augustine of hippo", "augustine-of-hippo"),
    ("elizabeth i", "elizabeth-i-of-england"),
    ("queen elizabeth i", "elizabeth-i-of-england"),
    ("akbar the great", "akbar"),
    ("louis xiv", "louis-xiv-of-france"),
    ("antony van leeuwenhoek", "antonie-van-leeuwenhoek"),
    ("thomas malthus", "thomas-robert-malthus"),
    ("nikolaus otto", "nicolaus-otto"),
    ("urban ii", "pope-urban-ii"),
    ("b.r. ambedkar", "b-r-ambedkar"),
    ("isabella i", "isabella-i-of-castile"),
    ("qin shi huangdi", "qin-shi-huang"),
]


@dataclass
class CurationOverrides:
    """Parsed overrides file."""
    compound_names: dict[str, list[str]] = field(default_factory=dict)
    aliases: dict[str, list[str]] = field(default_factory=dict)
    merges: dict[str, list[str]] = field(default_factory=dict)
    renames: dict[str, str] = field(default_factory=dict)
    updates: dict[str, dict[str, Any]] = field(default_factory=dict)
    path: Optional[Path] = None

    @property
    def merge_pairs(self) -> list[tuple[str, str]]:
        """(keep, absorb) pairs in file order."""
        return [(keep, other) for keep, others in self.merges.items() for other in others]

    def alias_pairs(self) -> list[tuple[str, str]]:
        return [(alias, figure_id) for figure_id, aliases in self.aliases.items() for alias in aliases]


@dataclass
class AliasSeedResult:
    inserted: int = 0
    skipped: int = 0


@dataclass
class ReconcileSummary:
    merges: MergeBatchSummary = field(default_factory=MergeBatchSummary)
    renamed: int = 0
    updated: int = 0
    aliases: AliasSeedResult = field(default_factory=AliasSeedResult)
    auto_aliases: int = 0
    consensus_updated: int = 0


def _drop_comments(section: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in section.items() if not k.startswith("_")}


def _section(data: dict[str, Any], name: str, value_type: type, path: Path) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Section '{name}' must be an object", path)
    section = _drop_comments(section)
    for key, value in section.items():
        if not isinstance(value, value_type):
            raise ConfigurationError(f"Invalid value for '{name}.{key}'", path)
        if value_type is list and not all(isinstance(v, str) for v in value):
            raise ConfigurationError(f"'{name}.{key}' must be a list of strings", path)
    return section


def load_overrides(path: Path) -> CurationOverrides:
    """
    Load and validate an overrides JSON file.

    Raises:
        ConfigurationError: file missing, unreadable, not JSON, or wrongly shaped
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError("Overrides file not found", path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read overrides ({e})", path) from e
    if not isinstance(data, dict):
        raise ConfigurationError("Overrides must be a JSON object", path)

    overrides = CurationOverrides(
        compound_names=_section(data, "compound_names", list, path),
        aliases=_section(data, "aliases", list, path),
        merges=_section(data, "merges", list, path),
        renames=_section(data, "renames", str, path),
        updates=_section(data, "updates", dict, path),
        path=path,
    )
    logger.debug(
        f"Loaded overrides from {path}: {len(overrides.merges)} merges, "
        f"{len(overrides.renames)} renames, {len(overrides.compound_names)} compound names"
    )
    return overrides


def load_alias_file(path: Path) -> list[tuple[str, str]]:
    """
    Read "alias<TAB>figure_id" or "alias,figure_id" lines.

    Raises:
        ConfigurationError: file missing or a line has no figure id
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError("Alias file not found", path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigurationError(f"Could not read alias file ({e})", path) from e

    pairs = []
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        sep = "\t" if "\t" in line else ","
        alias, _, figure_id = line.rpartition(sep)
        alias, figure_id = alias.strip(), figure_id.strip()
        if not alias or not figure_id:
            raise ConfigurationError(f"Malformed alias line {lineno}: {line!r}", path)
        pairs.append((alias, figure_id))
    return pairs


def seed_aliases(db: FigureDatabase, pairs: Iterable[tuple[str, str]]) -> AliasSeedResult:
    """
    Insert normalized aliases for figures that exist.

    Existing aliases are kept; pairs naming a missing figure are skipped.
    """
    result = AliasSeedResult()
    with db.transaction():
        for alias, figure_id in pairs:
            normalized = normalize(alias)
            if not normalized or not db.figure_exists(figure_id):
                logger.debug(f"Skipping alias '{alias}' -> {figure_id}")
                result.skipped += 1
                continue
            if db.add_alias(normalized, figure_id):
                result.inserted += 1
            else:
                result.skipped += 1
    logger.info(f"Seeded {result.inserted} aliases ({result.skipped} skipped/existing)")
    return result


def apply_renames(db: FigureDatabase, renames: dict[str, str]) -> int:
    """Rename figures, keeping both the old and the new name as aliases."""
    renamed = 0
    with db.transaction():
        for figure_id, new_name in renames.items():
            figure = db.get_figure(figure_id)
            if figure is None:
                logger.warning(f"Figure '{figure_id}' not found, skipping rename")
                continue
            db.add_alias(normalize(figure.canonical_name), figure_id)
            db.update_figure_fields(figure_id, {"canonical_name": new_name})
            db.add_alias(normalize(new_name), figure_id)
            logger.info(f"Renamed {figure_id}: '{figure.canonical_name}' -> '{new_name}'")
            renamed += 1
    return renamed


def apply_updates(db: FigureDatabase, updates: dict[str, dict[str, Any]]) -> int:
    """Set curated attribute values; unknown fields are ignored with a warning."""
    updated = 0
    with db.transaction():
        for figure_id, values in updates.items():
            if not db.figure_exists(figure_id):
                logger.warning(f"Figure '{figure_id}' not found, skipping update")
                continue
            allowed = {k: v for k, v in values.items() if k in UPDATABLE_FIELDS}
            ignored = set(values) - set(allowed)
            if ignored:
                logger.warning(f"Ignoring non-updatable fields for {figure_id}: {sorted(ignored)}")
            if allowed:
                db.update_figure_fields(figure_id, allowed)
                updated += 1
    return updated


def auto_generate_aliases(db: FigureDatabase) -> int:
    """Ensure every figure's normalized canonical name is an alias of it."""
    added = 0
    with db.transaction():
        for figure in list(db.iter_figures()):
            if db.add_alias(normalize(figure.canonical_name), figure.id):
                added += 1
    logger.debug(f"Added {added} canonical-name aliases")
    return added


def reconcile(db: FigureDatabase, overrides: CurationOverrides) -> ReconcileSummary:
    """
    Apply an overrides file in order: merges, renames, updates, aliases,
    canonical-name aliases, then a full consensus recompute.
    """
    summary = ReconcileSummary()
    summary.merges = MergeResolver(db).merge_batch(overrides.merge_pairs, forced_primary=True)
    summary.renamed = apply_renames(db, overrides.renames)
    summary.updated = apply_updates(db, overrides.updates)
    summary.aliases = seed_aliases(db, overrides.alias_pairs())
    summary.auto_aliases = auto_generate_aliases(db)
    summary.consensus_updated = len(ConsensusCalculator(db).recompute_all())
    logger.info(
        f"Reconciled: {len(summary.merges.merged)} merges, {summary.renamed} renames, "
        f"{summary.updated} updates, {summary.aliases.inserted} aliases"
    )
    return summary
