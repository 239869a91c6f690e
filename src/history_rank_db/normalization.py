"""
Name normalization for reconciling historical figure names across sources.

Every function here is pure: identical input always yields identical output,
which the resolver and duplicate detector rely on for idempotence.
"""

import re
import unicodedata
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

# Honorifics and particles ignored when comparing name tokens
STOP_WORDS = frozenset({"the", "of", "saint", "st", "ibn", "al", "von", "de", "da", "di"})

_PARENTHETICAL = re.compile(r"\s*\([^)]*\)\s*")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """Decompose unicode and drop combining marks ("Atatürk" -> "Ataturk")."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize(name: Optional[str]) -> str:
    """
    Canonical comparison form of a human name.

    1. Strip diacritics
    2. Lowercase
    3. Drop parenthesised content ("Gautama Buddha (Siddhartha)")
    4. Replace non-alphanumeric characters with spaces
    5. Collapse whitespace and trim

    Returns an empty string for empty input.
    """
    if not name:
        return ""
    result = strip_diacritics(name).lower()
    result = _PARENTHETICAL.sub(" ", result)
    result = _NON_ALNUM.sub(" ", result)
    return _WHITESPACE.sub(" ", result).strip()


def tokenize(name: Optional[str]) -> list[str]:
    """Normalized name split into tokens, with STOP_WORDS removed."""
    return [t for t in normalize(name).split(" ") if t and t not in STOP_WORDS]


def last_name(name: Optional[str]) -> str:
    """Last token of the normalized name (the whole name for single tokens)."""
    parts = normalize(name).split(" ")
    return parts[-1]


def generate_slug(name: Optional[str]) -> str:
    """
    URL-safe slug used as a figure id.

    "Isaac Newton" -> "isaac-newton", "Paul (apostle)" -> "paul",
    "René Descartes" -> "rene-descartes".
    """
    if not name:
        return ""
    result = strip_diacritics(name).lower().strip()
    result = _PARENTHETICAL.sub(" ", result)
    result = _NON_ALNUM.sub("-", result)
    return result.strip("-")


def alias_variants(name: Optional[str]) -> list[str]:
    """
    Deterministic lookup variants of a raw name for the alias table.

    Order is stable and duplicates are removed. The first variant is always
    the plain normalized form.
    """
    if not name:
        return []

    raw = name.strip()
    candidates: list[str] = [
        normalize(raw),
        normalize(raw.replace("&", " and ")),
    ]

    base = normalize(raw.replace("&", " and "))
    if base.startswith("st "):
        candidates.append("saint " + base[3:])
    elif base.startswith("saint "):
        candidates.append("st " + base[6:])
    if base.startswith("the "):
        candidates.append(base[4:])
    if " of " in base:
        candidates.append(_WHITESPACE.sub(" ", base.replace(" of ", " ")).strip())
    without_fillers = " ".join(t for t in base.split(" ") if t not in ("the", "of"))
    candidates.append(without_fillers)

    seen: set[str] = set()
    variants: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.add(candidate)
            variants.append(candidate)
    return variants


def levenshtein(a: str, b: str, max_distance: Optional[int] = None) -> int:
    """
    Edit distance (insert, delete, substitute all cost 1).

    With max_distance set, any distance above it is reported as
    max_distance + 1, which lets callers stop early on far-apart names.
    """
    return Levenshtein.distance(a, b, score_cutoff=max_distance)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard similarity of two token collections (0.0 when both are empty)."""
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)


# Birth-year thresholds for era labels, checked in order
_ERA_BOUNDARIES: list[tuple[int, str]] = [
    (-600, "Ancient"),
    (200, "Classical"),
    (800, "Late Antiquity"),
    (1500, "Medieval"),
    (1800, "Early Modern"),
    (1914, "Industrial"),
    (1945, "Modern"),
]

_DOMAIN_OCCUPATIONS: dict[str, list[str]] = {
    "Science": ["PHYSICIST", "CHEMIST", "MATHEMATICIAN", "BIOLOGIST", "ASTRONOMER", "INVENTOR", "ENGINEER", "COMPUTER SCIENTIST"],
    "Religion": ["RELIGIOUS FIGURE", "RELIGIOUS LEADER", "POPE", "THEOLOGIAN"],
    "Philosophy": ["PHILOSOPHER", "THINKER"],
    "Politics": ["POLITICIAN", "STATESMAN", "PRESIDENT", "EMPEROR", "KING", "QUEEN", "MONARCH", "NOBLEMAN", "DIPLOMAT"],
    "Military": ["MILITARY LEADER", "GENERAL", "SOLDIER", "CONQUEROR"],
    "Arts": ["WRITER", "POET", "NOVELIST", "PLAYWRIGHT", "ARTIST", "PAINTER", "SCULPTOR", "COMPOSER", "MUSICIAN", "ACTOR", "FILMMAKER"],
    "Exploration": ["EXPLORER", "NAVIGATOR", "TRAVELER"],
    "Economics": ["ECONOMIST", "BUSINESSPERSON"],
    "Medicine": ["PHYSICIAN", "DOCTOR", "SURGEON", "MEDICAL RESEARCHER"],
    "Social Reform": ["ACTIVIST", "REFORMER", "REVOLUTIONARY"],
}


def determine_era(birth_year: Optional[int]) -> Optional[str]:
    """Era label for a birth year (negative years are BCE)."""
    if birth_year is None:
        return None
    for boundary, era in _ERA_BOUNDARIES:
        if birth_year < boundary:
            return era
    return "Contemporary"


def occupation_to_domain(occupation: Optional[str]) -> str:
    """Map a free-text occupation onto a coarse domain, "Other" if unknown."""
    occ = (occupation or "").upper()
    for domain, occupations in _DOMAIN_OCCUPATIONS.items():
        if any(o in occ for o in occupations):
            return domain
    return "Other"
