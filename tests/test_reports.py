"""Tests for duplicate report CSVs."""

import csv

import pytest

from history_rank_db.detector import CandidateDetector
from history_rank_db.errors import ConfigurationError
from history_rank_db.reports import (
    REPORT_COLUMNS,
    candidates_filename,
    read_pairs_csv,
    safe_filename,
    write_duplicate_reports,
)


class TestDuplicateReports:
    def test_filenames(self):
        assert candidates_filename(300) == "top-300-duplicate-candidates.csv"
        assert safe_filename(300) == "top-300-duplicate-safe.csv"

    def test_write_and_read_back(self, sample_figures, tmp_path):
        report = CandidateDetector(top_k=300).detect(sample_figures)

        candidates_path, safe_path = write_duplicate_reports(report, tmp_path / "reports")

        assert candidates_path.name == "top-300-duplicate-candidates.csv"
        with open(candidates_path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert list(rows[0]) == REPORT_COLUMNS
        assert rows[0]["id_a"] == "qin-shi-huang"
        assert rows[0]["a_rank"] == "40.0"
        assert rows[0]["a_slug"] == ""
        assert rows[0]["rule"] == "substring"

        assert read_pairs_csv(safe_path) == [("qin-shi-huang", "qin-shi-huangdi")]

    def test_empty_report_has_header(self, tmp_path):
        report = CandidateDetector(top_k=10).detect([])
        _, safe_path = write_duplicate_reports(report, tmp_path)
        assert safe_path.read_text(encoding="utf-8").strip() == ",".join(REPORT_COLUMNS)
        assert read_pairs_csv(safe_path) == []

    def test_read_missing_report(self, tmp_path):
        with pytest.raises(ConfigurationError):
            read_pairs_csv(tmp_path / "missing.csv")

    def test_read_report_without_id_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("a,b\n1,2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            read_pairs_csv(path)

    def test_read_skips_incomplete_rows(self, tmp_path):
        path = tmp_path / "pairs.csv"
        path.write_text("id_a,id_b\nlaozi,lao-tzu\n,orphan\n", encoding="utf-8")
        assert read_pairs_csv(path) == [("laozi", "lao-tzu")]
