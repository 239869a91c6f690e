"""Import commands: figure dataset, alias seeds, ranking lists."""

from typing import Optional

import click

from ._common import _configure_logging, _load_compound_names, _resolve_data_dir, _resolve_db_path


@click.command("import-figures")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--db", "db_path", type=click.Path(), help="Database path (default: ./historyrank.db)")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Data directory (default: ./data)")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_import_figures(csv_path: Optional[str], db_path: Optional[str], data_dir: Optional[str], verbose: bool):
    """
    Import the authoritative figure dataset (Pantheon-style CSV).

    Without CSV_PATH, reads <data-dir>/raw/attention-gap-data.csv.

    \b
    Examples:
        history-rank-db import-figures
        history-rank-db import-figures data/raw/attention-gap-data.csv
    """
    _configure_logging(verbose)

    from pathlib import Path

    from history_rank_db.importers import FigureImporter
    from history_rank_db.importers.figures import FIGURES_CSV_FILENAME
    from history_rank_db.importers.rankings import RAW_DIR_NAME
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)
    source = Path(csv_path) if csv_path else _resolve_data_dir(data_dir) / RAW_DIR_NAME / FIGURES_CSV_FILENAME
    if not source.exists():
        raise click.ClickException(f"Figure dataset not found: {source}")

    click.echo(f"Importing figures from {source} into {db_path_obj}...", err=True)

    try:
        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        result = FigureImporter(database).import_csv(source)
        database.close()
    except Exception as e:
        raise click.ClickException(f"Figure import failed: {e}")

    click.echo(f"Rows read: {result.rows:,}")
    click.echo(f"New figures: {result.inserted:,}")
    click.echo(f"Updated figures: {result.updated:,}")
    if result.skipped:
        click.echo(f"Skipped rows: {result.skipped:,}")


@click.command("seed-aliases")
@click.option("--file", "alias_file", type=click.Path(), help="Extra alias file (alias<TAB>figure_id per line)")
@click.option("--no-builtin", is_flag=True, help="Skip the built-in known aliases")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_seed_aliases(alias_file: Optional[str], no_builtin: bool, db_path: Optional[str], verbose: bool):
    """
    Seed the alias table with known name variants.

    \b
    Examples:
        history-rank-db seed-aliases
        history-rank-db seed-aliases --file data/aliases.tsv
    """
    _configure_logging(verbose)

    from pathlib import Path

    from history_rank_db.overrides import KNOWN_ALIASES, load_alias_file, seed_aliases
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)

    try:
        pairs = [] if no_builtin else list(KNOWN_ALIASES)
        if alias_file:
            pairs.extend(load_alias_file(Path(alias_file)))

        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        result = seed_aliases(database, pairs)
        database.close()
    except Exception as e:
        raise click.ClickException(f"Alias seeding failed: {e}")

    click.echo(f"Seeded {result.inserted} aliases ({result.skipped} skipped/existing)")


@click.command("import-rankings")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Data directory (default: ./data)")
@click.option("--rankings-dir", type=click.Path(file_okay=False), help="Ranking files directory (default: <data-dir>/raw)")
@click.option("--overrides", "overrides_path", type=click.Path(), help="Overrides JSON with compound_names")
@click.option("--keep-existing", is_flag=True, help="Do not clear existing rankings first")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_import_rankings(
    data_dir: Optional[str],
    rankings_dir: Optional[str],
    overrides_path: Optional[str],
    keep_existing: bool,
    db_path: Optional[str],
    verbose: bool,
):
    """
    Import per-source ranking lists and recompute consensus.

    Files are detected by name: "<MODEL> LIST <n> (<date>).txt". Unmatched
    names are written to <data-dir>/reports/unmatched/ for curation.

    \b
    Examples:
        history-rank-db import-rankings
        history-rank-db import-rankings --rankings-dir data/raw --keep-existing
    """
    _configure_logging(verbose)

    from pathlib import Path

    from history_rank_db.consensus import ConsensusCalculator
    from history_rank_db.importers import (
        RankingImporter,
        aggregate_unmatched,
        detect_ranking_files,
        write_unmatched_candidates,
        write_unmatched_report,
    )
    from history_rank_db.importers.rankings import RAW_DIR_NAME
    from history_rank_db.reports import REPORTS_DIR_NAME
    from history_rank_db.resolver import AliasResolver
    from history_rank_db.snapshot import FigureSnapshot
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)
    data_dir_obj = _resolve_data_dir(data_dir)
    rankings_dir_obj = Path(rankings_dir) if rankings_dir else data_dir_obj / RAW_DIR_NAME

    specs = detect_ranking_files(rankings_dir_obj)
    if not specs:
        click.echo(f"No ranking files found in {rankings_dir_obj}", err=True)
        return

    click.echo(f"Found {len(specs)} ranking files in {rankings_dir_obj}", err=True)

    try:
        compound_names = _load_compound_names(overrides_path, data_dir_obj)
        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        snapshot = FigureSnapshot.from_database(database, compound_names)
        importer = RankingImporter(database, AliasResolver(snapshot))

        summary = importer.import_all(specs, clear_existing=not keep_existing)
        results = ConsensusCalculator(database).recompute_all()

        reports_dir = data_dir_obj / REPORTS_DIR_NAME
        write_unmatched_report(summary.files, reports_dir / "unmatched")
        candidates = aggregate_unmatched(summary.files)
        write_unmatched_candidates(candidates, reports_dir / "unmatched-candidates.csv")
        database.close()
    except Exception as e:
        raise click.ClickException(f"Ranking import failed: {e}")

    click.echo("\nRanking Import Results")
    click.echo("=" * 40)
    click.echo(f"{'File':<32} {'Matched':>9} {'Unmatched':>10}")
    click.echo("-" * 53)
    for result in summary.files:
        label = f"{result.spec.source}/{result.spec.sample_id}"
        click.echo(f"{label:<32} {result.matched:>9,} {len(result.unmatched):>10,}")
    click.echo("-" * 53)
    click.echo(f"Entries: {summary.entries:,}, matched: {summary.matched:,}, rows inserted: {summary.rows_inserted:,}")
    if summary.failed_files:
        click.echo(f"Files without usable entries: {len(summary.failed_files)}")
        for path in summary.failed_files:
            click.echo(f"  {path.name}")
    click.echo(f"Distinct unmatched names: {len(candidates):,}")
    click.echo(f"Figures with consensus: {len(results):,}")
