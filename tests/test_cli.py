"""Tests for the history-rank-db CLI."""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from history_rank_db.commands import main
from history_rank_db.store import FigureDatabase

FIGURES_CSV = (
    "Name,Slug,Occupation,Born,HPI Rank,HPI Score,2025 Views,2024 Views\n"
    "Isaac Newton,Isaac_Newton,Physicist,1643,10,91.5,5000,4000\n"
    "Napoleon,Napoleon,Military Leader,1769,2,95.0,8000,7000\n"
    "Laozi,Laozi,Philosopher,-601,30,80.0,,\n"
    "Qin Shi Huang,Qin_Shi_Huang,Emperor,-259,50,70.0,100,100\n"
    "Qin Shi Huangdi,,Emperor,-259,,,,\n"
    "James Watson,James_Watson,Biologist,1928,300,60.0,,\n"
    "Francis Crick,Francis_Crick,Biologist,1916,250,61.0,,\n"
)

CLAUDE_LIST = json.dumps([
    {"rank": 1, "name": "Isaac Newton", "contribution": "Gravity"},
    {"rank": 2, "name": "Napoleon Bonaparte", "contribution": "Code"},
    {"rank": 3, "name": "Qin Shi Huang", "contribution": "Unified China"},
    {"rank": 4, "name": "Watson and Crick", "contribution": "DNA"},
    {"rank": 5, "name": "Unknown Person", "contribution": "?"},
])

GPT_LIST = "Sure! Here is the list:\n" + json.dumps([
    {"rank": 1, "name": "Napoleon", "contribution": "Code"},
    {"rank": 2, "name": "Qin Shi Huangdi", "contribution": "Great Wall"},
    {"rank": 3, "name": "Isaac Newton", "contribution": "Optics"},
    {"rank": 4, "name": "Laozi", "contribution": "Taoism"},
])


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    data = tmp_path / "data"
    raw = data / "raw"
    raw.mkdir(parents=True)
    (raw / "attention-gap-data.csv").write_text(FIGURES_CSV, encoding="utf-8")
    (raw / "Claude LIST 1 (2025-01-01).txt").write_text(CLAUDE_LIST, encoding="utf-8")
    (raw / "GPT LIST 1 (2025-01-02).txt").write_text(GPT_LIST, encoding="utf-8")
    (data / "figure-overrides.json").write_text(
        json.dumps({"compound_names": {"watson and crick": ["james-watson", "francis-crick"]}}),
        encoding="utf-8",
    )
    return data


def _invoke(runner: CliRunner, *args: str):
    result = runner.invoke(main, list(args))
    assert result.exit_code == 0, result.output
    return result


@pytest.fixture
def imported_db(runner, data_dir, db_path) -> Path:
    """Run init, import-figures, seed-aliases and import-rankings."""
    db = str(db_path)
    data = str(data_dir)
    _invoke(runner, "init", "--db", db)
    _invoke(runner, "import-figures", "--db", db, "--data-dir", data)
    _invoke(runner, "seed-aliases", "--db", db)
    _invoke(runner, "import-rankings", "--db", db, "--data-dir", data)
    return db_path


# ---------------------------------------------------------------------------
# Setup and import commands
# ---------------------------------------------------------------------------

class TestImportCommands:
    def test_init(self, runner, db_path):
        result = _invoke(runner, "init", "--db", str(db_path))
        assert f"Database ready: {db_path}" in result.output
        assert db_path.exists()

    def test_group_verbose_applies_to_command(self, runner, db_path):
        _invoke(runner, "-v", "init", "--db", str(db_path))
        assert logging.getLogger("history_rank_db").level == logging.DEBUG

        _invoke(runner, "init", "--db", str(db_path))
        assert logging.getLogger("history_rank_db").level == logging.WARNING

    def test_import_figures(self, runner, data_dir, db_path):
        result = _invoke(runner, "import-figures", "--db", str(db_path), "--data-dir", str(data_dir))
        assert "New figures: 7" in result.output

    def test_import_figures_missing_dataset(self, runner, tmp_path, db_path):
        result = runner.invoke(main, ["import-figures", "--db", str(db_path), "--data-dir", str(tmp_path / "empty")])
        assert result.exit_code != 0
        assert "Figure dataset not found" in result.output

    def test_import_rankings(self, runner, data_dir, imported_db):
        database = FigureDatabase(imported_db, readonly=False)
        stats = database.get_stats()
        assert stats.rankings == 9
        assert stats.sources == {"claude": 5, "gpt": 4}

        newton = database.get_figure("isaac-newton")
        assert newton.llm_consensus_rank == 2.0
        assert newton.variance_score == 0.5

        unmatched = data_dir / "reports" / "unmatched" / "claude-list-1-unmatched.txt"
        assert unmatched.read_text(encoding="utf-8") == "5. Unknown Person\n"
        assert (data_dir / "reports" / "unmatched-candidates.csv").exists()

    def test_import_rankings_without_files(self, runner, tmp_path, db_path):
        result = _invoke(runner, "import-rankings", "--db", str(db_path), "--data-dir", str(tmp_path / "nothing"))
        assert "No ranking files found" in result.output


# ---------------------------------------------------------------------------
# Query and maintenance commands
# ---------------------------------------------------------------------------

class TestQueryCommands:
    def test_status(self, runner, imported_db):
        result = _invoke(runner, "status", "--db", str(imported_db))
        assert "Figures: 7" in result.output
        assert "Rankings: 9" in result.output
        assert "claude" in result.output

    def test_status_missing_database(self, runner, tmp_path):
        result = runner.invoke(main, ["status", "--db", str(tmp_path / "missing.db")])
        assert result.exit_code != 0
        assert "Failed to read database" in result.output

    def test_resolve(self, runner, data_dir, imported_db):
        result = _invoke(
            runner, "resolve", "Napoleon Bonaparte", "Watson and Crick", "Unknown Person",
            "--db", str(imported_db), "--data-dir", str(data_dir),
        )
        lines = result.output.strip().splitlines()
        assert "Napoleon Bonaparte\talias\tnapoleon" in lines
        assert "Watson and Crick\tcompound\tjames-watson, francis-crick" in lines
        assert "Unknown Person\tunmatched\t-" in lines

    def test_recalculate(self, runner, imported_db):
        result = _invoke(runner, "recalculate", "--db", str(imported_db))
        assert "Recalculated consensus for 7 figures" in result.output


class TestDuplicateCommands:
    def test_find_and_merge_safe(self, runner, data_dir, imported_db):
        db = str(imported_db)
        data = str(data_dir)

        result = _invoke(runner, "find-duplicates", "--db", db, "--data-dir", data)
        assert "Candidate pairs: 1" in result.output
        assert "Safe pairs: 1" in result.output
        assert (data_dir / "reports" / "top-300-duplicate-safe.csv").exists()

        result = _invoke(runner, "merge-safe", "--db", db, "--data-dir", data)
        assert "qin-shi-huangdi -> qin-shi-huang" in result.output
        assert "Merged 1 pairs, skipped 0" in result.output

        database = FigureDatabase(imported_db, readonly=False)
        assert not database.figure_exists("qin-shi-huangdi")
        assert database.get_figure("qin-shi-huang").llm_consensus_rank == 2.5

        # Running again finds nothing left to merge
        result = _invoke(runner, "merge-safe", "--db", db, "--data-dir", data)
        assert "Merged 0 pairs, skipped 1" in result.output

    def test_merge(self, runner, imported_db):
        result = _invoke(runner, "merge", "james-watson", "francis-crick", "--keep", "james-watson", "--db", str(imported_db))
        assert "Merged francis-crick into james-watson" in result.output

    def test_merge_missing_figure(self, runner, imported_db):
        result = runner.invoke(main, ["merge", "laozi", "lao-tzu", "--db", str(imported_db)])
        assert result.exit_code != 0
        assert "no longer exists" in result.output

    def test_reconcile_missing_overrides(self, runner, tmp_path, imported_db):
        missing = tmp_path / "nope.json"
        result = runner.invoke(main, ["reconcile", "--overrides", str(missing), "--db", str(imported_db)])
        assert result.exit_code != 0
        assert "Overrides file not found" in result.output

    def test_reconcile(self, runner, tmp_path, imported_db):
        overrides = tmp_path / "overrides.json"
        overrides.write_text(json.dumps({"renames": {"laozi": "Lao Tzu"}}), encoding="utf-8")

        result = _invoke(runner, "reconcile", "--overrides", str(overrides), "--db", str(imported_db))

        assert "Renamed: 1" in result.output
        assert FigureDatabase(imported_db, readonly=False).get_figure("laozi").canonical_name == "Lao Tzu"
