"""
Read-only, in-memory view of figures and aliases used by the resolver.
"""

import logging
from typing import TYPE_CHECKING, Iterable, Mapping, Optional, Sequence

from .models import FigureRecord
from .normalization import last_name, normalize

if TYPE_CHECKING:
    from .store import FigureDatabase

logger = logging.getLogger(__name__)


class FigureSnapshot:
    """
    Figures in a fixed order plus the alias and compound-name tables.

    Normalized names and last tokens are computed once on load so repeated
    resolution is cheap. Call reload() after merges change the database.
    """

    def __init__(
        self,
        figures: Sequence[FigureRecord],
        aliases: Optional[Mapping[str, str]] = None,
        compound_names: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._db: Optional["FigureDatabase"] = None
        self._compound_source: dict[str, list[str]] = {
            k: list(v) for k, v in (compound_names or {}).items()
        }
        self._load(figures, aliases or {})

    @classmethod
    def from_database(
        cls,
        db: "FigureDatabase",
        compound_names: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> "FigureSnapshot":
        snapshot = cls(list(db.iter_figures()), db.get_alias_map(), compound_names)
        snapshot._db = db
        return snapshot

    def _load(self, figures: Iterable[FigureRecord], aliases: Mapping[str, str]) -> None:
        self.figures: list[FigureRecord] = list(figures)
        self.ids: set[str] = {f.id for f in self.figures}
        self.normalized_names: list[str] = [normalize(f.canonical_name) for f in self.figures]
        self.last_tokens: list[str] = [last_name(f.canonical_name) for f in self.figures]
        self.aliases: dict[str, str] = dict(aliases)
        self.compound_names: dict[str, list[str]] = {
            normalize(phrase): ids for phrase, ids in self._compound_source.items()
        }
        logger.debug(
            f"Loaded snapshot: {len(self.figures)} figures, {len(self.aliases)} aliases, "
            f"{len(self.compound_names)} compound names"
        )

    def reload(self) -> None:
        """Re-read figures and aliases from the backing database."""
        if self._db is None:
            raise RuntimeError("Snapshot was not created from a database")
        self._load(list(self._db.iter_figures()), self._db.get_alias_map())

    def __len__(self) -> int:
        return len(self.figures)

    def __contains__(self, figure_id: object) -> bool:
        return figure_id in self.ids
