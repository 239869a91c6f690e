"""Shared utilities used across CLI command modules."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click


def _configure_logging(verbose: bool) -> None:
    """Configure logging for the figures database.

    A -v given to the main group applies to every command.
    """
    ctx = click.get_current_context(silent=True)
    if ctx is not None and ctx.find_root().obj:
        verbose = verbose or bool(ctx.find_root().obj.get("verbose"))
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    # Set level for history_rank_db loggers
    for logger_name in [
        "history_rank_db",
        "history_rank_db.store",
        "history_rank_db.resolver",
        "history_rank_db.detector",
        "history_rank_db.merge",
        "history_rank_db.consensus",
        "history_rank_db.importers",
    ]:
        logging.getLogger(logger_name).setLevel(level)


def _resolve_db_path(db_path: Optional[str] = None) -> Path:
    """Resolve the database path from an explicit --db value or the default."""
    if db_path is not None:
        return Path(db_path)
    from history_rank_db.store import DEFAULT_DB_PATH
    return DEFAULT_DB_PATH


def _resolve_data_dir(data_dir: Optional[str] = None) -> Path:
    if data_dir is not None:
        return Path(data_dir)
    from history_rank_db.store import DEFAULT_DATA_DIR
    return DEFAULT_DATA_DIR


def _load_compound_names(overrides_path: Optional[str], data_dir: Path) -> dict[str, list[str]]:
    """
    Compound-name table for the resolver.

    An explicit --overrides path must exist; the default file under the data
    directory is optional.
    """
    from history_rank_db.overrides import OVERRIDES_FILENAME, load_overrides

    if overrides_path is not None:
        return load_overrides(Path(overrides_path)).compound_names

    default_path = data_dir / OVERRIDES_FILENAME
    if not default_path.exists():
        return {}
    return load_overrides(default_path).compound_names
