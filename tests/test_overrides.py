"""Tests for curation overrides, alias seeding and reconciliation."""

import json

import pytest

from history_rank_db.errors import ConfigurationError
from history_rank_db.models import RankingRecord
from history_rank_db.overrides import (
    KNOWN_ALIASES,
    apply_renames,
    apply_updates,
    auto_generate_aliases,
    load_alias_file,
    load_overrides,
    reconcile,
    seed_aliases,
)

OVERRIDES = {
    "_comment": "Curated fixes",
    "compound_names": {"_note": "phrases naming several figures", "watson and crick": ["james-watson", "francis-crick"]},
    "aliases": {"laozi": ["lao-tse", "Li Er"]},
    "merges": {"qin-shi-huangdi": ["qin-shi-huang"]},
    "renames": {"augustine-of-hippo": "Saint Augustine of Hippo"},
    "updates": {"laozi": {"birth_year": -571, "llm_consensus_rank": 1.0}},
}


def _write_json(path, data) -> object:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoadOverrides:
    def test_load(self, tmp_path):
        overrides = load_overrides(_write_json(tmp_path / "figure-overrides.json", OVERRIDES))

        assert overrides.compound_names == {"watson and crick": ["james-watson", "francis-crick"]}
        assert overrides.merge_pairs == [("qin-shi-huangdi", "qin-shi-huang")]
        assert overrides.alias_pairs() == [("lao-tse", "laozi"), ("Li Er", "laozi")]
        assert overrides.renames == {"augustine-of-hippo": "Saint Augustine of Hippo"}
        assert overrides.path == tmp_path / "figure-overrides.json"

    def test_missing_sections_default_empty(self, tmp_path):
        overrides = load_overrides(_write_json(tmp_path / "o.json", {}))
        assert overrides.merges == {}
        assert overrides.updates == {}

    def test_missing_file(self, tmp_path):
        path = tmp_path / "missing.json"
        with pytest.raises(ConfigurationError) as exc_info:
            load_overrides(path)
        assert exc_info.value.path == path
        assert str(path) in str(exc_info.value)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "o.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_overrides(path)

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"merges": ["a", "b"]},
            {"merges": {"a": "b"}},
            {"compound_names": {"x": [1, 2]}},
            {"renames": {"a": ["b"]}},
        ],
    )
    def test_wrong_shape(self, tmp_path, data):
        with pytest.raises(ConfigurationError):
            load_overrides(_write_json(tmp_path / "o.json", data))


class TestLoadAliasFile:
    def test_tab_and_comma_lines(self, tmp_path):
        path = tmp_path / "aliases.tsv"
        path.write_text(
            "# curated\n\nlao tse\tlaozi\nLi, Er,laozi\n",
            encoding="utf-8",
        )
        assert load_alias_file(path) == [("lao tse", "laozi"), ("Li, Er", "laozi")]

    def test_malformed_line(self, tmp_path):
        path = tmp_path / "aliases.tsv"
        path.write_text("lao tse\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="line 1"):
            load_alias_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_alias_file(tmp_path / "missing.tsv")


# ---------------------------------------------------------------------------
# Applying overrides
# ---------------------------------------------------------------------------

class TestSeedAliases:
    def test_seed(self, seeded_db):
        result = seed_aliases(seeded_db, [("Lao-Tse", "laozi"), ("Li Er", "laozi"), ("x", "missing-figure")])
        assert (result.inserted, result.skipped) == (2, 1)
        assert seeded_db.get_alias_map()["lao tse"] == "laozi"

    def test_existing_alias_kept(self, seeded_db):
        result = seed_aliases(seeded_db, [("Napoleon Bonaparte", "isaac-newton")])
        assert (result.inserted, result.skipped) == (0, 1)
        assert seeded_db.get_alias_map()["napoleon bonaparte"] == "napoleon"

    def test_known_aliases_are_normalized_pairs(self):
        assert ("qin shi huangdi", "qin-shi-huang") in KNOWN_ALIASES
        assert all(alias and figure_id for alias, figure_id in KNOWN_ALIASES)


class TestRenamesAndUpdates:
    def test_rename_keeps_old_name_as_alias(self, seeded_db):
        assert apply_renames(seeded_db, {"augustine-of-hippo": "Saint Augustine of Hippo", "nobody": "X"}) == 1

        assert seeded_db.get_figure("augustine-of-hippo").canonical_name == "Saint Augustine of Hippo"
        aliases = seeded_db.get_aliases_for("augustine-of-hippo")
        assert "augustine of hippo" in aliases
        assert "saint augustine of hippo" in aliases

    def test_updates_restricted_to_curated_fields(self, seeded_db):
        assert apply_updates(seeded_db, {"laozi": {"birth_year": -571, "llm_consensus_rank": 1.0}, "nobody": {"era": "X"}}) == 1

        laozi = seeded_db.get_figure("laozi")
        assert laozi.birth_year == -571
        assert laozi.llm_consensus_rank == 30.0

    def test_auto_generate_aliases(self, seeded_db):
        added = auto_generate_aliases(seeded_db)
        assert added == 10
        assert auto_generate_aliases(seeded_db) == 0
        assert seeded_db.get_alias_map()["isaac newton"] == "isaac-newton"


class TestReconcile:
    def test_reconcile(self, seeded_db, tmp_path):
        seeded_db.insert_ranking(
            RankingRecord(figure_id="qin-shi-huang", source="claude", sample_id="list-1", rank=40, raw_name="Qin Shi Huang")
        )
        overrides = load_overrides(_write_json(tmp_path / "figure-overrides.json", OVERRIDES))

        summary = reconcile(seeded_db, overrides)

        # Merges keep the configured id even when the other record looks better
        assert [(o.primary_id, o.secondary_id) for o in summary.merges.merged] == [("qin-shi-huangdi", "qin-shi-huang")]
        assert not seeded_db.figure_exists("qin-shi-huang")
        assert summary.renamed == 1
        assert summary.updated == 1
        assert summary.aliases.inserted == 2
        assert summary.consensus_updated == 1

        huangdi = seeded_db.get_figure("qin-shi-huangdi")
        assert huangdi.llm_consensus_rank == 40.0
        assert seeded_db.get_alias_map()["qin shi huang"] == "qin-shi-huangdi"
        # Figures without rankings lose their stale consensus
        assert seeded_db.get_figure("napoleon").llm_consensus_rank is None

    def test_reconcile_twice_is_stable(self, seeded_db, tmp_path):
        overrides = load_overrides(_write_json(tmp_path / "figure-overrides.json", OVERRIDES))
        reconcile(seeded_db, overrides)

        summary = reconcile(seeded_db, overrides)

        assert summary.merges.merged == []
        assert summary.merges.skipped == [("qin-shi-huangdi", "qin-shi-huang")]
        assert summary.aliases.inserted == 0
        assert summary.auto_aliases == 0
