"""
SQLite store for figures, rankings, name aliases and import logs.

Connections are pooled per database path at module level so every
FigureDatabase (and every component that receives one) shares a single
connection to a given file.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from .models import DatabaseStats, FigureRecord, RankingRecord, utc_now_iso
from .schema import create_all_tables

logger = logging.getLogger(__name__)

# Default locations, overridable via environment
DEFAULT_DB_PATH = Path(os.environ.get("HISTORY_RANK_DB", "historyrank.db"))
DEFAULT_DATA_DIR = Path(os.environ.get("HISTORY_RANK_DATA", "data"))

# Module-level shared connections by path
_shared_connections: dict[str, sqlite3.Connection] = {}

# Module-level shared read-only connections
_shared_readonly_connections: dict[str, sqlite3.Connection] = {}

# Module-level singletons for FigureDatabase
_figure_database_instances: dict[str, "FigureDatabase"] = {}

FIGURE_COLUMNS = list(FigureRecord.model_fields)

# Ordering used everywhere a stable "snapshot order" of figures is needed
FIGURE_ORDER = (
    "llm_consensus_rank IS NULL, llm_consensus_rank, "
    "hpi_rank IS NULL, hpi_rank, id"
)


def _apply_pragmas(conn: sqlite3.Connection, readonly: bool) -> None:
    """Apply PRAGMAs to a SQLite connection."""
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA temp_store = MEMORY")
    if not readonly:
        conn.execute("PRAGMA journal_mode = WAL")
        logger.debug("Enabled WAL journal mode")


def _get_shared_connection(db_path: Path, readonly: bool = False) -> sqlite3.Connection:
    """Get or create a shared database connection for the given path."""
    path_key = str(db_path)

    if readonly:
        if path_key not in _shared_readonly_connections:
            if not db_path.exists():
                raise FileNotFoundError(f"Database not found: {db_path}")
            conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
            conn.row_factory = sqlite3.Row
            _apply_pragmas(conn, readonly=True)
            _shared_readonly_connections[path_key] = conn
            logger.debug(f"Created shared read-only database connection for {path_key}")
        return _shared_readonly_connections[path_key]

    if path_key not in _shared_connections:
        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(db_path))
        conn.row_factory = sqlite3.Row
        _apply_pragmas(conn, readonly=False)

        # CREATE IF NOT EXISTS is idempotent
        create_all_tables(conn)
        _shared_connections[path_key] = conn
        logger.debug(f"Created shared database connection for {path_key}")

    return _shared_connections[path_key]


def close_shared_connection(db_path: Optional[Path] = None) -> None:
    """Close the shared connections (read-write and read-only) for a path."""
    path_key = str(db_path or DEFAULT_DB_PATH)
    for pool in (_shared_connections, _shared_readonly_connections):
        if path_key in pool:
            pool.pop(path_key).close()
            logger.debug(f"Closed shared database connection for {path_key}")


def get_figure_database(db_path: Optional[str | Path] = None, readonly: bool = True) -> "FigureDatabase":
    """
    Get a singleton FigureDatabase instance for the given path.

    Args:
        db_path: Path to database file
        readonly: If True (default), open in read-only mode.

    Returns:
        Shared FigureDatabase instance (readonly by default)
    """
    path_key = str(db_path or DEFAULT_DB_PATH) + (":ro" if readonly else ":rw")
    if path_key not in _figure_database_instances:
        logger.debug(f"Creating new FigureDatabase instance for {path_key}")
        _figure_database_instances[path_key] = FigureDatabase(db_path=db_path, readonly=readonly)
    return _figure_database_instances[path_key]


class FigureDatabase:
    """
    Figures, rankings and aliases backed by SQLite.

    Write methods commit immediately unless called inside transaction(),
    in which case the whole block commits (or rolls back) as one unit.
    """

    def __init__(self, db_path: Optional[str | Path] = None, readonly: bool = True):
        """
        Initialize the figure database.

        Args:
            db_path: Path to database file (creates if not exists)
            readonly: If True (default), open in read-only mode.
                      Set to False for imports, merges and recalculation.
        """
        self._db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._readonly = readonly
        self._conn: Optional[sqlite3.Connection] = None
        self._transaction_depth = 0

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def readonly(self) -> bool:
        return self._readonly

    def _connect(self) -> sqlite3.Connection:
        """Get or create database connection using shared connection pool."""
        if self._conn is not None:
            return self._conn
        self._conn = _get_shared_connection(self._db_path, self._readonly)
        return self._conn

    def close(self) -> None:
        """Clear connection reference (shared connection remains open)."""
        self._conn = None

    def _commit(self) -> None:
        if self._transaction_depth == 0:
            self._connect().commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes atomically; nested blocks join the outer one."""
        conn = self._connect()
        self._transaction_depth += 1
        try:
            yield conn
        except Exception:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                conn.rollback()
                logger.debug("Rolled back transaction")
            raise
        else:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                conn.commit()

    # ------------------------------------------------------------------
    # Figures
    # ------------------------------------------------------------------

    def insert_figure(self, record: FigureRecord) -> None:
        """Insert a new figure. Raises sqlite3.IntegrityError if the id exists."""
        conn = self._connect()
        data = record.model_dump_for_db()
        now = utc_now_iso()
        data["created_at"] = now
        data["updated_at"] = now
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        conn.execute(f"INSERT INTO figures ({columns}) VALUES ({placeholders})", list(data.values()))
        self._commit()

    def get_figure(self, figure_id: str) -> Optional[FigureRecord]:
        conn = self._connect()
        row = conn.execute("SELECT * FROM figures WHERE id = ?", (figure_id,)).fetchone()
        return FigureRecord.from_row(row) if row else None

    def figure_exists(self, figure_id: str) -> bool:
        conn = self._connect()
        row = conn.execute("SELECT 1 FROM figures WHERE id = ?", (figure_id,)).fetchone()
        return row is not None

    def iter_figures(self) -> Iterator[FigureRecord]:
        """Yield every figure in snapshot order (consensus rank, HPI rank, id)."""
        conn = self._connect()
        cursor = conn.execute(f"SELECT * FROM figures ORDER BY {FIGURE_ORDER}")
        for row in cursor:
            yield FigureRecord.from_row(row)

    def get_top_figures(self, limit: int) -> list[FigureRecord]:
        """Figures with a consensus rank, best first, at most `limit` of them."""
        conn = self._connect()
        cursor = conn.execute(
            "SELECT * FROM figures WHERE llm_consensus_rank IS NOT NULL "
            "ORDER BY llm_consensus_rank, id LIMIT ?",
            (limit,),
        )
        return [FigureRecord.from_row(row) for row in cursor]

    def update_figure_fields(self, figure_id: str, fields: dict[str, Any]) -> int:
        """
        Update the given columns on one figure and bump updated_at.

        Returns:
            Number of rows updated (0 if the figure does not exist)
        """
        unknown = set(fields) - set(FIGURE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown figure columns: {sorted(unknown)}")
        conn = self._connect()
        values = dict(fields)
        values["updated_at"] = utc_now_iso()
        assignments = ", ".join(f"{name} = ?" for name in values)
        cursor = conn.execute(
            f"UPDATE figures SET {assignments} WHERE id = ?",
            [*values.values(), figure_id],
        )
        self._commit()
        return cursor.rowcount

    def delete_figure(self, figure_id: str) -> int:
        conn = self._connect()
        cursor = conn.execute("DELETE FROM figures WHERE id = ?", (figure_id,))
        self._commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Rankings
    # ------------------------------------------------------------------

    def insert_ranking(self, record: RankingRecord) -> bool:
        """
        Insert a ranking row, ignoring exact repeats of an observation.

        Returns:
            True if a new row was written
        """
        conn = self._connect()
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO rankings
                (figure_id, source, sample_id, rank, contribution, raw_name, imported_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.figure_id,
                record.source,
                record.sample_id,
                record.rank,
                record.contribution,
                record.raw_name,
                record.imported_at or utc_now_iso(),
            ),
        )
        self._commit()
        return cursor.rowcount > 0

    def clear_rankings(self, source: Optional[str] = None, sample_id: Optional[str] = None) -> int:
        """Delete rankings, optionally restricted to one source and sample."""
        conn = self._connect()
        if source is None:
            cursor = conn.execute("DELETE FROM rankings")
        elif sample_id is None:
            cursor = conn.execute("DELETE FROM rankings WHERE source = ?", (source,))
        else:
            cursor = conn.execute(
                "DELETE FROM rankings WHERE source = ? AND sample_id = ?", (source, sample_id)
            )
        self._commit()
        logger.debug(f"Cleared {cursor.rowcount} rankings (source={source}, sample={sample_id})")
        return cursor.rowcount

    def get_rankings(self, figure_id: str) -> list[RankingRecord]:
        conn = self._connect()
        cursor = conn.execute(
            "SELECT * FROM rankings WHERE figure_id = ? ORDER BY source, sample_id, rank",
            (figure_id,),
        )
        return [RankingRecord(**dict(row)) for row in cursor]

    def iter_rankings(self) -> Iterator[RankingRecord]:
        conn = self._connect()
        cursor = conn.execute("SELECT * FROM rankings ORDER BY figure_id, source, sample_id, rank")
        for row in cursor:
            yield RankingRecord(**dict(row))

    def get_ranked_figure_ids(self) -> list[str]:
        """Ids of every figure with at least one ranking row."""
        conn = self._connect()
        cursor = conn.execute("SELECT DISTINCT figure_id FROM rankings ORDER BY figure_id")
        return [row["figure_id"] for row in cursor]

    def reassign_rankings(self, from_id: str, to_id: str) -> tuple[int, int]:
        """
        Move every ranking of one figure onto another.

        Rows that would duplicate an observation the target already holds
        (same source, sample and rank) are deleted instead of moved.

        Returns:
            Tuple of (moved, dropped) row counts
        """
        conn = self._connect()
        moved = conn.execute(
            "UPDATE OR IGNORE rankings SET figure_id = ? WHERE figure_id = ?", (to_id, from_id)
        ).rowcount
        dropped = conn.execute("DELETE FROM rankings WHERE figure_id = ?", (from_id,)).rowcount
        self._commit()
        return moved, dropped

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def add_alias(self, alias: str, figure_id: str, replace: bool = False) -> bool:
        """
        Map a normalized alias onto a figure.

        Args:
            alias: Already-normalized alias text
            figure_id: Target figure id
            replace: Re-point an existing alias instead of keeping it

        Returns:
            True if the row was written
        """
        if not alias:
            return False
        conn = self._connect()
        verb = "INSERT OR REPLACE" if replace else "INSERT OR IGNORE"
        cursor = conn.execute(f"{verb} INTO name_aliases (alias, figure_id) VALUES (?, ?)", (alias, figure_id))
        self._commit()
        return cursor.rowcount > 0

    def get_alias_map(self) -> dict[str, str]:
        conn = self._connect()
        cursor = conn.execute("SELECT alias, figure_id FROM name_aliases")
        return {row["alias"]: row["figure_id"] for row in cursor}

    def get_aliases_for(self, figure_id: str) -> list[str]:
        conn = self._connect()
        cursor = conn.execute(
            "SELECT alias FROM name_aliases WHERE figure_id = ? ORDER BY alias", (figure_id,)
        )
        return [row["alias"] for row in cursor]

    def reassign_aliases(self, from_id: str, to_id: str) -> int:
        conn = self._connect()
        cursor = conn.execute("UPDATE name_aliases SET figure_id = ? WHERE figure_id = ?", (to_id, from_id))
        self._commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Consensus and import logs
    # ------------------------------------------------------------------

    def set_consensus(self, figure_id: str, consensus_rank: Optional[float], variance_score: Optional[float]) -> None:
        self.update_figure_fields(
            figure_id, {"llm_consensus_rank": consensus_rank, "variance_score": variance_score}
        )

    def clear_consensus(self) -> int:
        """Reset derived consensus columns on every figure."""
        conn = self._connect()
        cursor = conn.execute(
            "UPDATE figures SET llm_consensus_rank = NULL, variance_score = NULL "
            "WHERE llm_consensus_rank IS NOT NULL OR variance_score IS NOT NULL"
        )
        self._commit()
        return cursor.rowcount

    def log_import(
        self,
        source: str,
        sample_id: Optional[str],
        filename: Optional[str],
        record_count: int,
        unmatched_count: int = 0,
    ) -> None:
        conn = self._connect()
        conn.execute(
            """
            INSERT INTO import_logs (source, sample_id, filename, record_count, unmatched_count, imported_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (source, sample_id, filename, record_count, unmatched_count, utc_now_iso()),
        )
        self._commit()

    def get_import_logs(self) -> list[dict[str, Any]]:
        conn = self._connect()
        cursor = conn.execute("SELECT * FROM import_logs ORDER BY id")
        return [dict(row) for row in cursor]

    def get_stats(self) -> DatabaseStats:
        """Get database statistics."""
        conn = self._connect()

        figures = conn.execute("SELECT COUNT(*) FROM figures").fetchone()[0]
        rankings = conn.execute("SELECT COUNT(*) FROM rankings").fetchone()[0]
        aliases = conn.execute("SELECT COUNT(*) FROM name_aliases").fetchone()[0]
        with_consensus = conn.execute(
            "SELECT COUNT(*) FROM figures WHERE llm_consensus_rank IS NOT NULL"
        ).fetchone()[0]

        cursor = conn.execute("SELECT source, COUNT(*) AS cnt FROM rankings GROUP BY source ORDER BY source")
        by_source = {row["source"]: row["cnt"] for row in cursor}

        db_size = self._db_path.stat().st_size if self._db_path.exists() else 0

        return DatabaseStats(
            figures=figures,
            rankings=rankings,
            aliases=aliases,
            sources=by_source,
            figures_with_consensus=with_consensus,
            database_size_bytes=db_size,
        )
