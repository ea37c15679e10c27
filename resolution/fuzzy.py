"""
Company name similarity.

Names are compared after stripping legal suffixes (Ltd, GmbH, Pty ...) and
punctuation. Exact cleaned names score 100, containment 85, matching
acronyms 75; anything else falls back to normalised Levenshtein similarity.
"""
import re

from rapidfuzz.distance import Levenshtein

from resolution.constants import ACRONYM_MIN_LENGTH, NAME_ACRONYM_SCORE, NAME_CONTAINMENT_SCORE

_LEGAL_SUFFIX_RE = re.compile(
    r"\b(ltd|limited|plc|inc|incorporated|corp|corporation|llc|gmbh|ag|sa|srl|bv|nv|pty|pvt)\b",
    re.IGNORECASE,
)


def clean_company_name(name: str) -> str:
    """'ACME Trading Ltd.' -> 'acme trading'"""
    cleaned = _LEGAL_SUFFIX_RE.sub("", name.lower())
    cleaned = re.sub(r"[^a-z0-9\s]", " ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _acronym(cleaned: str) -> str:
    words = cleaned.split()
    if len(words) < 2:
        return ""
    return "".join(w[0] for w in words if w[0].isalnum()).upper()


def string_similarity(a: str, b: str) -> int:
    """Levenshtein similarity 0-100, case-insensitive."""
    if not a or not b:
        return 0
    a, b = a.strip().lower(), b.strip().lower()
    if a == b:
        return 100
    return round(Levenshtein.normalized_similarity(a, b) * 100)


def name_similarity(name1: str, name2: str) -> int:
    if not name1 or not name2:
        return 0

    clean1 = clean_company_name(name1)
    clean2 = clean_company_name(name2)
    if not clean1 or not clean2:
        # Nothing left but a legal suffix
        return 100 if name1.strip().lower() == name2.strip().lower() else 0

    if clean1 == clean2:
        return 100
    if clean1 in clean2 or clean2 in clean1:
        return NAME_CONTAINMENT_SCORE

    acronym1 = _acronym(clean1)
    if len(acronym1) >= ACRONYM_MIN_LENGTH and acronym1 == _acronym(clean2):
        return NAME_ACRONYM_SCORE

    return string_similarity(clean1, clean2)
