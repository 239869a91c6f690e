"""
Shared test fixtures for history-rank-db.

Provides fresh temp databases, database instances, figure factories and a
small seeded dataset. Resets module-level singletons between tests.
"""

import sqlite3
from pathlib import Path

import pytest

from history_rank_db.models import FigureRecord
from history_rank_db.schema import create_all_tables
from history_rank_db.store import FigureDatabase


# ---------------------------------------------------------------------------
# Singleton reset (autouse) -- clears module-level caches every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_module_singletons():
    """Close and clear all module-level connections/instances so tests are fully isolated."""
    import history_rank_db.store as _store

    yield

    for pool in (_store._shared_connections, _store._shared_readonly_connections):
        for conn in pool.values():
            conn.close()
        pool.clear()
    _store._figure_database_instances.clear()


# ---------------------------------------------------------------------------
# Database path & connection
# ---------------------------------------------------------------------------

@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Return a path to a fresh temporary database file."""
    return tmp_path / "test_historyrank.db"


@pytest.fixture
def db_conn(db_path: Path) -> sqlite3.Connection:
    """Create a SQLite connection with the full schema."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    create_all_tables(conn)
    yield conn
    conn.close()


# ---------------------------------------------------------------------------
# Database instances (writable)
# ---------------------------------------------------------------------------

@pytest.fixture
def figure_db(db_path: Path) -> FigureDatabase:
    """Writable FigureDatabase backed by the temp DB."""
    return FigureDatabase(db_path, readonly=False)


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------

def _make_figure(figure_id: str, name: str, **overrides) -> FigureRecord:
    return FigureRecord(id=figure_id, canonical_name=name, **overrides)


@pytest.fixture
def sample_figures() -> list[FigureRecord]:
    """A handful of figures covering the resolver and merge scenarios."""
    return [
        _make_figure("isaac-newton", "Isaac Newton", llm_consensus_rank=3.0, hpi_rank=10, wikipedia_slug="Isaac_Newton"),
        _make_figure("napoleon", "Napoleon", llm_consensus_rank=5.0, hpi_rank=2, wikipedia_slug="Napoleon"),
        _make_figure("gautama-buddha", "Gautama Buddha", llm_consensus_rank=8.0, hpi_rank=20),
        _make_figure("laozi", "Laozi", llm_consensus_rank=30.0),
        _make_figure("qin-shi-huang", "Qin Shi Huang", llm_consensus_rank=40.0, birth_year=-259),
        _make_figure("qin-shi-huangdi", "Qin Shi Huangdi", llm_consensus_rank=55.0, birth_year=-259),
        _make_figure("siddhartha-gautama", "Siddhartha Gautama", llm_consensus_rank=60.0),
        _make_figure("francis-crick", "Francis Crick", llm_consensus_rank=70.0),
        _make_figure("james-watson", "James Watson", llm_consensus_rank=75.0),
        _make_figure("augustine-of-hippo", "Augustine of Hippo", llm_consensus_rank=80.0),
    ]


@pytest.fixture
def seeded_db(figure_db: FigureDatabase, sample_figures: list[FigureRecord]) -> FigureDatabase:
    """figure_db populated with sample_figures and a few aliases."""
    for figure in sample_figures:
        figure_db.insert_figure(figure)
    figure_db.add_alias("napoleon bonaparte", "napoleon")
    figure_db.add_alias("lao tzu", "laozi")
    figure_db.add_alias("saint augustine", "augustine-of-hippo")
    return figure_db
