"""
Duplicate-candidate detection over the top-ranked figures.

Every unordered pair inside the top-K window is tested against three
name-similarity rules. Pairs that pass are "candidates"; candidates whose
tokens can be paired one-to-one within a small edit distance are also
"safe" and may be merged without human review.
"""

import logging
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from .models import CandidatePair, CandidateRule, FigureRecord
from .normalization import jaccard, levenshtein, normalize, tokenize

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 300

# Per-token edit distance allowed by the safe rule
SAFE_TOKEN_DISTANCE = 2

# Jaccard threshold for the token-overlap rule
TOKEN_OVERLAP_THRESHOLD = 0.6

# Edit distance threshold for the edit-distance rule
EDIT_DISTANCE_THRESHOLD = 2

# Shortest last token that counts as a surname match
MIN_LAST_TOKEN_LENGTH = 3


class UnionFind:
    """Simple Union-Find (Disjoint Set Union) data structure for grouping figure ids."""

    def __init__(self, elements: Iterable[str]):
        """Initialize with the element ids."""
        self.parent: dict[str, str] = {e: e for e in elements}
        self.rank: dict[str, int] = {e: 0 for e in self.parent}

    def find(self, x: str) -> str:
        """Find with path compression."""
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x: str, y: str) -> None:
        """Union by rank."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1

    def groups(self) -> dict[str, list[str]]:
        """Return dict of root -> list of members."""
        result: dict[str, list[str]] = {}
        for e in self.parent:
            root = self.find(e)
            result.setdefault(root, []).append(e)
        return result


class DuplicateReport(BaseModel):
    """Candidate and safe pairs found in one detection run."""

    top_k: int
    figures_scanned: int = 0
    candidates: list[CandidatePair] = Field(default_factory=list)

    @property
    def safe_pairs(self) -> list[CandidatePair]:
        return [p for p in self.candidates if p.safe]

    def clusters(self) -> list[list[str]]:
        """
        Connected components of the candidate graph.

        Only components with two or more figures are returned, each sorted,
        largest first.
        """
        ids: dict[str, None] = {}
        for pair in self.candidates:
            ids[pair.id_a] = None
            ids[pair.id_b] = None
        uf = UnionFind(ids)
        for pair in self.candidates:
            uf.union(pair.id_a, pair.id_b)
        groups = [sorted(members) for members in uf.groups().values() if len(members) > 1]
        groups.sort(key=lambda g: (-len(g), g[0]))
        return groups


def _last_token_match(a_tokens: list[str], b_tokens: list[str]) -> bool:
    last = a_tokens[-1]
    return last == b_tokens[-1] and len(last) >= MIN_LAST_TOKEN_LENGTH


def candidate_rule(name_a: str, name_b: str) -> CandidateRule | None:
    """
    Return the first rule under which two names look like the same person.

    Returns None when the pair is not a candidate, including when the
    normalized names are identical or either name has no usable tokens.
    """
    an, bn = normalize(name_a), normalize(name_b)
    if an == bn:
        return None
    at, bt = tokenize(name_a), tokenize(name_b)
    if not at or not bt:
        return None

    last_match = _last_token_match(at, bt)

    if (an in bn or bn in an) and (last_match or min(len(at), len(bt)) >= 2):
        return CandidateRule.SUBSTRING

    if last_match and jaccard(at, bt) >= TOKEN_OVERLAP_THRESHOLD:
        return CandidateRule.TOKEN_OVERLAP

    if last_match and min(levenshtein(an, bn), levenshtein(at[0], bt[0])) <= EDIT_DISTANCE_THRESHOLD:
        return CandidateRule.EDIT_DISTANCE

    return None


def is_candidate(name_a: str, name_b: str) -> bool:
    return candidate_rule(name_a, name_b) is not None


def _has_perfect_matching(a_tokens: list[str], b_tokens: list[str], max_distance: int) -> bool:
    """Every token of A paired with a distinct, close token of B (Kuhn's augmenting paths)."""
    edges = [
        [j for j, tb in enumerate(b_tokens) if levenshtein(ta, tb, max_distance) <= max_distance]
        for ta in a_tokens
    ]
    match_of_b: list[int] = [-1] * len(b_tokens)

    def augment(i: int, visited: list[bool]) -> bool:
        for j in edges[i]:
            if visited[j]:
                continue
            visited[j] = True
            if match_of_b[j] == -1 or augment(match_of_b[j], visited):
                match_of_b[j] = i
                return True
        return False

    return all(augment(i, [False] * len(b_tokens)) for i in range(len(a_tokens)))


def is_safe_pair(name_a: str, name_b: str) -> bool:
    """Same token count and a one-to-one token pairing within SAFE_TOKEN_DISTANCE edits."""
    at, bt = tokenize(name_a), tokenize(name_b)
    if not at or len(at) != len(bt):
        return False
    return _has_perfect_matching(at, bt, SAFE_TOKEN_DISTANCE)


class CandidateDetector:
    """Scans the top-K figures for likely duplicate records."""

    def __init__(self, top_k: int = DEFAULT_TOP_K):
        if top_k < 0:
            raise ValueError(f"top_k must be non-negative, got {top_k}")
        self.top_k = top_k

    def detect(self, figures: Sequence[FigureRecord]) -> DuplicateReport:
        """
        Test every unordered pair in the window.

        Args:
            figures: Figures ordered by consensus rank; only the first
                     top_k are considered.

        Returns:
            DuplicateReport with candidates in scan order (i < j)
        """
        window = list(figures[: self.top_k])
        report = DuplicateReport(top_k=self.top_k, figures_scanned=len(window))

        for i, a in enumerate(window):
            for b in window[i + 1 :]:
                rule = candidate_rule(a.canonical_name, b.canonical_name)
                if rule is None:
                    continue
                safe = is_safe_pair(a.canonical_name, b.canonical_name)
                report.candidates.append(CandidatePair.from_figures(a, b, rule, safe))
                logger.debug(f"Candidate ({rule.value}{', safe' if safe else ''}): {a.id} ~ {b.id}")

        logger.info(
            f"Scanned {len(window)} figures: {len(report.candidates)} candidates, "
            f"{len(report.safe_pairs)} safe"
        )
        return report
