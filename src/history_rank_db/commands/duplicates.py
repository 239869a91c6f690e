"""Duplicate handling commands: detection, merging, curated reconciliation."""

from typing import Optional

import click

from ._common import _configure_logging, _resolve_data_dir, _resolve_db_path


@click.command("find-duplicates")
@click.option("--top-k", type=int, default=300, help="Number of top-ranked figures to scan (default: 300)")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Data directory (reports go to <data-dir>/reports)")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_find_duplicates(top_k: int, data_dir: Optional[str], db_path: Optional[str], verbose: bool):
    """
    Find likely duplicate figures among the top-ranked ones.

    Writes top-<K>-duplicate-candidates.csv and top-<K>-duplicate-safe.csv.
    Nothing in the database is changed.

    \b
    Examples:
        history-rank-db find-duplicates
        history-rank-db find-duplicates --top-k 500 -v
    """
    _configure_logging(verbose)

    from history_rank_db.detector import CandidateDetector
    from history_rank_db.reports import REPORTS_DIR_NAME, write_duplicate_reports
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)
    reports_dir = _resolve_data_dir(data_dir) / REPORTS_DIR_NAME

    try:
        database = FigureDatabase(db_path=db_path_obj, readonly=True)
        figures = database.get_top_figures(top_k)
        report = CandidateDetector(top_k=top_k).detect(figures)
        candidates_path, safe_path = write_duplicate_reports(report, reports_dir)
        database.close()
    except Exception as e:
        raise click.ClickException(f"Duplicate detection failed: {e}")

    click.echo(f"Scanned {report.figures_scanned:,} figures")
    click.echo(f"Candidate pairs: {len(report.candidates):,} -> {candidates_path}")
    click.echo(f"Safe pairs: {len(report.safe_pairs):,} -> {safe_path}")

    clusters = report.clusters()
    if clusters:
        click.echo(f"\nClusters ({len(clusters)}):")
        for members in clusters:
            click.echo(f"  {', '.join(members)}")


@click.command("merge-safe")
@click.option("--report", "report_path", type=click.Path(), help="Safe-pairs CSV (default: <data-dir>/reports/top-<K>-duplicate-safe.csv)")
@click.option("--top-k", type=int, default=300, help="Top-K used to name the default report (default: 300)")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Data directory")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_merge_safe(report_path: Optional[str], top_k: int, data_dir: Optional[str], db_path: Optional[str], verbose: bool):
    """
    Merge every pair listed in the safe duplicates report.

    Pairs whose figures were already merged away are skipped.

    \b
    Examples:
        history-rank-db merge-safe
        history-rank-db merge-safe --report data/reports/top-300-duplicate-safe.csv
    """
    _configure_logging(verbose)

    from pathlib import Path

    from history_rank_db.consensus import ConsensusCalculator
    from history_rank_db.merge import MergeResolver
    from history_rank_db.reports import REPORTS_DIR_NAME, read_pairs_csv, safe_filename
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)
    if report_path:
        report = Path(report_path)
    else:
        report = _resolve_data_dir(data_dir) / REPORTS_DIR_NAME / safe_filename(top_k)

    try:
        pairs = read_pairs_csv(report)
        if not pairs:
            click.echo("No safe pairs found to merge.", err=True)
            return

        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        summary = MergeResolver(database).merge_batch(pairs)
        ConsensusCalculator(database).recompute_many(summary.survivors)
        database.close()
    except Exception as e:
        raise click.ClickException(f"Merge failed: {e}")

    for outcome in summary.merged:
        click.echo(f"  {outcome.secondary_id} -> {outcome.primary_id}")
    click.echo(f"Merged {len(summary.merged)} pairs, skipped {len(summary.skipped)}")


@click.command("merge")
@click.argument("id_a")
@click.argument("id_b")
@click.option("--keep", "keep_id", help="Figure id that must survive (default: the more complete record)")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_merge(id_a: str, id_b: str, keep_id: Optional[str], db_path: Optional[str], verbose: bool):
    """
    Merge two figures into one.

    \b
    Examples:
        history-rank-db merge qin-shi-huang qin-shi-huangdi
        history-rank-db merge laozi lao-tzu --keep laozi
    """
    _configure_logging(verbose)

    from history_rank_db.consensus import ConsensusCalculator
    from history_rank_db.merge import MergeResolver
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)

    try:
        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        outcome = MergeResolver(database).merge(id_a, id_b, primary_id=keep_id)
        result = ConsensusCalculator(database).recompute(outcome.primary_id)
        database.close()
    except Exception as e:
        raise click.ClickException(f"Merge failed: {e}")

    click.echo(f"Merged {outcome.secondary_id} into {outcome.primary_id}")
    if outcome.copied_fields:
        click.echo(f"Copied fields: {', '.join(outcome.copied_fields)}")
    click.echo(f"Rankings moved: {outcome.rankings_moved}, dropped as duplicates: {outcome.rankings_dropped}")
    if result is not None:
        click.echo(f"Consensus rank: {result.consensus_rank}, variance: {result.variance_score}")


@click.command("reconcile")
@click.option("--overrides", "overrides_path", type=click.Path(), help="Overrides JSON (default: <data-dir>/figure-overrides.json)")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Data directory")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_reconcile(overrides_path: Optional[str], data_dir: Optional[str], db_path: Optional[str], verbose: bool):
    """
    Apply curated overrides: merges, renames, updates and aliases.

    Consensus is recalculated for every figure afterwards.

    \b
    Examples:
        history-rank-db reconcile
        history-rank-db reconcile --overrides data/figure-overrides.json
    """
    _configure_logging(verbose)

    from pathlib import Path

    from history_rank_db.overrides import OVERRIDES_FILENAME, load_overrides, reconcile
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)
    path = Path(overrides_path) if overrides_path else _resolve_data_dir(data_dir) / OVERRIDES_FILENAME

    try:
        overrides = load_overrides(path)
        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        summary = reconcile(database, overrides)
        database.close()
    except Exception as e:
        raise click.ClickException(f"Reconcile failed: {e}")

    click.echo("\nReconcile Results")
    click.echo("=" * 40)
    click.echo(f"Merged: {len(summary.merges.merged)} (skipped {len(summary.merges.skipped)})")
    click.echo(f"Renamed: {summary.renamed}")
    click.echo(f"Updated: {summary.updated}")
    click.echo(f"Aliases added: {summary.aliases.inserted + summary.auto_aliases}")
    click.echo(f"Figures with consensus: {summary.consensus_updated}")
