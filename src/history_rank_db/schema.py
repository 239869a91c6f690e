"""
SQLite schema for the figures database.

All statements use CREATE ... IF NOT EXISTS so create_all_tables() is safe to
call on every writable connection.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

FIGURES_DDL = """
CREATE TABLE IF NOT EXISTS figures (
    id TEXT PRIMARY KEY,
    canonical_name TEXT NOT NULL,
    birth_year INTEGER,
    death_year INTEGER,
    domain TEXT,
    occupation TEXT,
    era TEXT,
    region_macro TEXT,
    region_sub TEXT,
    birth_polity TEXT,
    birth_place TEXT,
    birth_lat REAL,
    birth_lon REAL,
    wikipedia_slug TEXT,
    wikipedia_extract TEXT,
    wikidata_qid TEXT,
    hpi_rank INTEGER,
    hpi_score REAL,
    pageviews_2024 INTEGER,
    pageviews_2025 INTEGER,
    llm_consensus_rank REAL,
    variance_score REAL,
    created_at TEXT,
    updated_at TEXT
)
"""

RANKINGS_DDL = """
CREATE TABLE IF NOT EXISTS rankings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    figure_id TEXT NOT NULL REFERENCES figures(id),
    source TEXT NOT NULL,
    sample_id TEXT,
    rank INTEGER NOT NULL,
    contribution TEXT,
    raw_name TEXT NOT NULL,
    imported_at TEXT,
    UNIQUE (figure_id, source, sample_id, rank)
)
"""

NAME_ALIASES_DDL = """
CREATE TABLE IF NOT EXISTS name_aliases (
    alias TEXT PRIMARY KEY,
    figure_id TEXT NOT NULL REFERENCES figures(id)
)
"""

IMPORT_LOGS_DDL = """
CREATE TABLE IF NOT EXISTS import_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source TEXT NOT NULL,
    sample_id TEXT,
    filename TEXT,
    record_count INTEGER NOT NULL DEFAULT 0,
    unmatched_count INTEGER NOT NULL DEFAULT 0,
    imported_at TEXT
)
"""

INDEXES_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_figures_consensus ON figures(llm_consensus_rank)",
    "CREATE INDEX IF NOT EXISTS idx_figures_hpi_rank ON figures(hpi_rank)",
    "CREATE INDEX IF NOT EXISTS idx_figures_wikipedia_slug ON figures(wikipedia_slug)",
    "CREATE INDEX IF NOT EXISTS idx_rankings_figure ON rankings(figure_id)",
    "CREATE INDEX IF NOT EXISTS idx_rankings_source_sample ON rankings(source, sample_id)",
    "CREATE INDEX IF NOT EXISTS idx_name_aliases_figure ON name_aliases(figure_id)",
]

ALL_TABLES = ["figures", "rankings", "name_aliases", "import_logs"]


def create_all_tables(conn: sqlite3.Connection) -> None:
    """Create every table and index if missing."""
    for ddl in (FIGURES_DDL, RANKINGS_DDL, NAME_ALIASES_DDL, IMPORT_LOGS_DDL):
        conn.execute(ddl)
    for ddl in INDEXES_DDL:
        conn.execute(ddl)
    conn.commit()
    logger.debug(f"Ensured tables: {', '.join(ALL_TABLES)}")
