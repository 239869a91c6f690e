"""Database management commands: init, status, recalculation, name lookup."""

from typing import Optional

import click

from ._common import _configure_logging, _load_compound_names, _resolve_data_dir, _resolve_db_path


@click.command("init")
@click.option("--db", "db_path", type=click.Path(), help="Database path (default: ./historyrank.db)")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_init(db_path: Optional[str], verbose: bool):
    """
    Create the database file and tables if missing.

    \b
    Examples:
        history-rank-db init
        history-rank-db init --db /tmp/historyrank.db
    """
    _configure_logging(verbose)

    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)

    try:
        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        database.get_stats()
        database.close()
    except Exception as e:
        raise click.ClickException(f"Failed to initialize database: {e}")

    click.echo(f"Database ready: {db_path_obj}")


@click.command("status")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
def db_status(db_path: Optional[str]):
    """
    Show database status and statistics.

    \b
    Examples:
        history-rank-db status
        history-rank-db status --db /path/to/historyrank.db
    """
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)

    try:
        database = FigureDatabase(db_path=db_path_obj, readonly=True)
        stats = database.get_stats()
        logs = database.get_import_logs()
        database.close()
    except Exception as e:
        raise click.ClickException(f"Failed to read database: {e}")

    click.echo("\nHistory Rank Database Status")
    click.echo("=" * 40)
    click.echo(f"Figures: {stats.figures:,}")
    click.echo(f"Figures with consensus: {stats.figures_with_consensus:,}")
    click.echo(f"Rankings: {stats.rankings:,}")
    click.echo(f"Aliases: {stats.aliases:,}")
    click.echo(f"Database size: {stats.database_size_bytes / 1024 / 1024:.2f} MB")

    if stats.sources:
        click.echo("\n=== Rankings by Source ===")
        click.echo(f"{'Source':<30} {'Rows':>10}")
        click.echo("-" * 41)
        for source, count in sorted(stats.sources.items(), key=lambda x: -x[1]):
            click.echo(f"{source:<30} {count:>10,}")

    if logs:
        last = logs[-1]
        click.echo(f"\nImports logged: {len(logs)} (last: {last['source']} at {last['imported_at']})")


@click.command("recalculate")
@click.option("--include-source", "include_sources", multiple=True, help="Source to include even if excluded by default (e.g. pantheon)")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_recalculate(include_sources: tuple[str, ...], db_path: Optional[str], verbose: bool):
    """
    Recalculate consensus rank and variance for every figure.

    \b
    Examples:
        history-rank-db recalculate
        history-rank-db recalculate --include-source pantheon
    """
    _configure_logging(verbose)

    from history_rank_db.consensus import DEFAULT_EXCLUDED_SOURCES, ConsensusCalculator
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)
    excluded = DEFAULT_EXCLUDED_SOURCES - set(include_sources)

    try:
        database = FigureDatabase(db_path=db_path_obj, readonly=False)
        results = ConsensusCalculator(database, excluded_sources=excluded).recompute_all()
        database.close()
    except Exception as e:
        raise click.ClickException(f"Recalculation failed: {e}")

    click.echo(f"Recalculated consensus for {len(results):,} figures")


@click.command("resolve")
@click.argument("names", nargs=-1, required=True)
@click.option("--overrides", "overrides_path", type=click.Path(), help="Overrides JSON with compound_names")
@click.option("--data-dir", type=click.Path(file_okay=False), help="Data directory")
@click.option("--db", "db_path", type=click.Path(), help="Database path")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
def db_resolve(names: tuple[str, ...], overrides_path: Optional[str], data_dir: Optional[str], db_path: Optional[str], verbose: bool):
    """
    Show which figure(s) raw names resolve to, and by which stage.

    \b
    Examples:
        history-rank-db resolve "Napoleon Bonaparte"
        history-rank-db resolve "Lao-Tzu" "Watson and Crick"
    """
    _configure_logging(verbose)

    from history_rank_db.resolver import AliasResolver
    from history_rank_db.snapshot import FigureSnapshot
    from history_rank_db.store import FigureDatabase

    db_path_obj = _resolve_db_path(db_path)

    try:
        compound_names = _load_compound_names(overrides_path, _resolve_data_dir(data_dir))
        database = FigureDatabase(db_path=db_path_obj, readonly=True)
        resolver = AliasResolver(FigureSnapshot.from_database(database, compound_names))
        resolutions = [resolver.resolve_with_stage(name) for name in names]
        database.close()
    except Exception as e:
        raise click.ClickException(f"Resolve failed: {e}")

    for resolution in resolutions:
        ids = ", ".join(resolution.figure_ids) if resolution.figure_ids else "-"
        click.echo(f"{resolution.raw_name}\t{resolution.stage.value}\t{ids}")
