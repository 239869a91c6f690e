"""CLI commands package: main click group and command registration."""

import click

from history_rank_db import __version__


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """
    Manage the historical figures ranking database.

    \b
    Commands:
        init              Create the database and tables
        import-figures    Import the figure dataset (Pantheon CSV)
        seed-aliases      Seed known name variants
        import-rankings   Import LLM ranking lists and recompute consensus
        resolve           Show how raw names resolve to figures
        find-duplicates   Report likely duplicate figures
        merge-safe        Merge the safe duplicate pairs
        merge             Merge two figures
        reconcile         Apply curated overrides
        recalculate       Recompute consensus for every figure
        status            Show database status

    \b
    Examples:
        history-rank-db init
        history-rank-db import-figures
        history-rank-db seed-aliases
        history-rank-db import-rankings
        history-rank-db find-duplicates --top-k 300
        history-rank-db merge-safe
        history-rank-db status
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# Register all commands
from .imports import db_import_figures, db_import_rankings, db_seed_aliases

main.add_command(db_import_figures)
main.add_command(db_seed_aliases)
main.add_command(db_import_rankings)

from .duplicates import db_find_duplicates, db_merge, db_merge_safe, db_reconcile

main.add_command(db_find_duplicates)
main.add_command(db_merge_safe)
main.add_command(db_merge)
main.add_command(db_reconcile)

from .management import db_init, db_recalculate, db_resolve, db_status

main.add_command(db_init)
main.add_command(db_status)
main.add_command(db_recalculate)
main.add_command(db_resolve)
