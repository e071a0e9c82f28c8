"""Text normalization and name similarity.

``normalize_text`` is the equality rule for comparison (trim, case-fold,
collapse whitespace). Names additionally lose diacritics and punctuation so that
"José  Álvarez" and "jose alvarez" line up.
"""

from __future__ import annotations

import re
import unicodedata
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

_PUNCTUATION = re.compile(r"[^\w\s]")

EXACT_SCORE: Final[float] = 1.0
CONTAINMENT_SCORE: Final[float] = 0.9
SURNAME_SCORE: Final[float] = 0.8
TOKEN_OVERLAP_WEIGHT: Final[float] = 0.7
MIN_SURNAME_LENGTH: Final[int] = 3


def normalize_text(value: str | None) -> str:
    if value is None:
        return ""
    return " ".join(value.split()).casefold()


def normalize_values(values: Iterable[str]) -> frozenset[str]:
    return frozenset(normalized for value in values if (normalized := normalize_text(value)))


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_name(value: str | None) -> str:
    if not value:
        return ""
    without_marks = strip_diacritics(value)
    return " ".join(_PUNCTUATION.sub(" ", without_marks).split()).casefold()


def name_similarity(left: str | None, right: str | None) -> float:
    """Score how likely two renderings name the same person, in ``[0, 1]``.

    Exact match after normalization scores 1.0, every token of one name found in
    the other (middle names, maiden names) 0.9, a shared surname of three or more letters
    0.8; otherwise the token overlap ratio weighted down to at most 0.7.
    """

    a = normalize_name(left)
    b = normalize_name(right)
    if not a or not b:
        return 0.0
    if a == b:
        return EXACT_SCORE
    tokens_a = a.split()
    tokens_b = b.split()
    if set(tokens_a) <= set(tokens_b) or set(tokens_b) <= set(tokens_a):
        return CONTAINMENT_SCORE

    surname_a = tokens_a[-1]
    surname_b = tokens_b[-1]
    if surname_a == surname_b and len(surname_a) >= MIN_SURNAME_LENGTH:
        return SURNAME_SCORE

    shared = set(tokens_a) & set(tokens_b)
    if not shared:
        return 0.0
    return TOKEN_OVERLAP_WEIGHT * len(shared) / max(len(set(tokens_a)), len(set(tokens_b)))
