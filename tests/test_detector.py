"""Tests for duplicate-candidate detection."""

import pytest

from history_rank_db.detector import (
    CandidateDetector,
    DuplicateReport,
    UnionFind,
    candidate_rule,
    is_candidate,
    is_safe_pair,
)
from history_rank_db.models import CandidatePair, CandidateRule, FigureRecord


def _figure(figure_id: str, name: str, **overrides) -> FigureRecord:
    return FigureRecord(id=figure_id, canonical_name=name, **overrides)


def _pair(id_a: str, id_b: str, safe: bool = False) -> CandidatePair:
    return CandidatePair(id_a=id_a, name_a=id_a, id_b=id_b, name_b=id_b, rule=CandidateRule.SUBSTRING, safe=safe)


# ---------------------------------------------------------------------------
# UnionFind
# ---------------------------------------------------------------------------

class TestUnionFind:
    def test_singletons(self):
        uf = UnionFind(["a", "b", "c"])
        groups = uf.groups()
        assert len(groups) == 3

    def test_union_and_find(self):
        uf = UnionFind(["a", "b", "c", "d"])
        uf.union("a", "b")
        uf.union("c", "d")
        assert uf.find("a") == uf.find("b")
        assert uf.find("c") == uf.find("d")
        assert uf.find("a") != uf.find("c")

    def test_transitive(self):
        uf = UnionFind(["a", "b", "c"])
        uf.union("a", "b")
        uf.union("b", "c")
        groups = uf.groups()
        assert len(groups) == 1
        assert sorted(next(iter(groups.values()))) == ["a", "b", "c"]

    def test_union_same_set_is_noop(self):
        uf = UnionFind(["a", "b"])
        uf.union("a", "b")
        uf.union("b", "a")
        assert len(uf.groups()) == 1


# ---------------------------------------------------------------------------
# Candidate rules
# ---------------------------------------------------------------------------

class TestCandidateRule:
    def test_substring_with_multi_token_shorter_name(self):
        assert candidate_rule("Qin Shi Huang", "Qin Shi Huangdi") == CandidateRule.SUBSTRING

    def test_substring_with_shared_surname(self):
        assert candidate_rule("Isaac Newton", "Newton") == CandidateRule.SUBSTRING

    def test_token_overlap(self):
        assert candidate_rule("Gaius Julius Caesar", "Julius Gaius Caesar") == CandidateRule.TOKEN_OVERLAP

    def test_edit_distance(self):
        assert candidate_rule("Johann Bach", "Johan Bach") == CandidateRule.EDIT_DISTANCE

    def test_identical_normalized_names_are_not_candidates(self):
        assert candidate_rule("Isaac Newton", "ISAAC  NEWTON") is None

    def test_different_surnames_not_flagged(self):
        """Shared tokens alone are not enough when the last tokens differ."""
        assert candidate_rule("Siddhartha Gautama", "Gautama Buddha") is None

    def test_shared_surname_different_people(self):
        assert candidate_rule("John Adams", "Samuel Adams") is None

    def test_short_surname_does_not_count(self):
        assert candidate_rule("Li Bo", "Du Bo") is None

    def test_stop_words_only(self):
        assert candidate_rule("The Of", "Of The") is None

    def test_symmetric(self):
        for a, b in [("Qin Shi Huang", "Qin Shi Huangdi"), ("Johann Bach", "Johan Bach"), ("Newton", "Isaac Newton")]:
            assert is_candidate(a, b) == is_candidate(b, a)

    def test_substring_with_equal_token_counts_either_order(self):
        assert candidate_rule("Qin Shi Huang", "Qin Shi Huangdi") == CandidateRule.SUBSTRING
        assert candidate_rule("Qin Shi Huangdi", "Qin Shi Huang") == CandidateRule.SUBSTRING


class TestSafePair:
    def test_close_tokens(self):
        assert is_safe_pair("Qin Shi Huang", "Qin Shi Huangdi")
        assert is_safe_pair("Johann Bach", "Johan Bach")

    def test_reordered_tokens(self):
        assert is_safe_pair("Gaius Julius Caesar", "Julius Gaius Caesar")

    def test_token_count_mismatch(self):
        assert not is_safe_pair("Isaac Newton", "Newton")

    def test_token_too_far(self):
        assert not is_safe_pair("Johann Sebastian Bach", "Johann Christian Bach")

    def test_requires_optimal_matching(self):
        """A greedy first-fit pairing fails here; a full matching exists."""
        # abc~abd (1), abc~abcde (2), xbd~abd (1), xbd~abcde (3)
        assert is_safe_pair("Abc Xbd", "Abd Abcde")

    def test_empty(self):
        assert not is_safe_pair("", "")


# ---------------------------------------------------------------------------
# CandidateDetector
# ---------------------------------------------------------------------------

class TestCandidateDetector:
    def test_detects_qin_pair(self, sample_figures):
        report = CandidateDetector(top_k=300).detect(sample_figures)

        assert report.figures_scanned == len(sample_figures)
        assert len(report.candidates) == 1
        pair = report.candidates[0]
        assert (pair.id_a, pair.id_b) == ("qin-shi-huang", "qin-shi-huangdi")
        assert pair.rule == CandidateRule.SUBSTRING
        assert pair.safe
        assert pair.rank_a == 40.0
        assert pair.rank_b == 55.0
        assert report.safe_pairs == [pair]

    def test_window_truncated_to_top_k(self, sample_figures):
        report = CandidateDetector(top_k=5).detect(sample_figures)
        assert report.figures_scanned == 5
        assert report.candidates == []

    def test_zero_top_k(self, sample_figures):
        report = CandidateDetector(top_k=0).detect(sample_figures)
        assert report.figures_scanned == 0
        assert report.candidates == []

    def test_negative_top_k_rejected(self):
        with pytest.raises(ValueError):
            CandidateDetector(top_k=-1)

    def test_unsafe_candidate_kept_in_candidates_only(self):
        figures = [
            _figure("isaac-newton", "Isaac Newton", llm_consensus_rank=1.0),
            _figure("newton", "Newton", llm_consensus_rank=2.0),
        ]
        report = CandidateDetector().detect(figures)
        assert len(report.candidates) == 1
        assert report.safe_pairs == []

    def test_scan_order(self):
        figures = [
            _figure("qin-shi-huangdi", "Qin Shi Huangdi", llm_consensus_rank=1.0),
            _figure("qin-shi-huang", "Qin Shi Huang", llm_consensus_rank=2.0),
        ]
        pair = CandidateDetector().detect(figures).candidates[0]
        assert pair.id_a == "qin-shi-huangdi"
        assert pair.id_b == "qin-shi-huang"


class TestClusters:
    def test_connected_components(self):
        report = DuplicateReport(
            top_k=10,
            candidates=[_pair("b", "a"), _pair("b", "c"), _pair("d", "e")],
        )
        assert report.clusters() == [["a", "b", "c"], ["d", "e"]]

    def test_empty(self):
        assert DuplicateReport(top_k=10).clusters() == []
