"""Exception types for the resolution and consensus pipeline.

Recoverable errors (malformed input, unresolved or ambiguous names, stale
merge targets) are logged and counted by the batch that hits them.
ConfigurationError is fatal and aborts the batch.
"""

from pathlib import Path
from typing import Optional


class HistoryRankError(Exception):
    """Base class for all history-rank-db errors."""


class MalformedInputError(HistoryRankError):
    """A ranking array or row could not be parsed or had the wrong shape."""


class UnresolvedNameError(HistoryRankError):
    """No resolver stage produced a confident match for a raw name."""

    def __init__(self, raw_name: str):
        super().__init__(f"Could not resolve name: {raw_name!r}")
        self.raw_name = raw_name


class AmbiguousMatchError(UnresolvedNameError):
    """The fuzzy stage found several figures at the same best distance."""

    def __init__(self, raw_name: str, figure_ids: list[str], distance: int):
        HistoryRankError.__init__(
            self,
            f"Ambiguous fuzzy match for {raw_name!r} at distance {distance}: {', '.join(figure_ids)}",
        )
        self.raw_name = raw_name
        self.figure_ids = figure_ids
        self.distance = distance


class StaleMergeTargetError(HistoryRankError):
    """A merge pair references a figure that no longer exists."""

    def __init__(self, figure_id: str):
        super().__init__(f"Figure '{figure_id}' no longer exists")
        self.figure_id = figure_id


class ConfigurationError(HistoryRankError):
    """A required override or alias resource is missing or unreadable."""

    def __init__(self, message: str, path: Optional[str | Path] = None):
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)
        self.path = Path(path) if path is not None else None
