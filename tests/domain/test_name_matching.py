from __future__ import annotations

import pytest

from kinsync.domain.normalize import (
    name_similarity,
    normalize_name,
    normalize_text,
    normalize_values,
)


def test_normalize_text_trims_folds_and_collapses_whitespace() -> None:
    assert normalize_text("  New   York ") == "new york"
    assert normalize_text(None) == ""


def test_normalize_values_drops_blanks() -> None:
    assert normalize_values(["Smith", " smith ", "", "  "]) == frozenset({"smith"})


def test_normalize_name_strips_marks_and_punctuation() -> None:
    assert normalize_name("José  Álvarez-Núñez") == "jose alvarez nunez"


@pytest.mark.parametrize(
    ("left", "right", "score"),
    [
        ("John Smith", "john  smith", 1.0),
        ("Mary Jones", "Mary Ann Jones", 0.9),
        ("Ellen Walsh", "Nell Walsh", 0.8),
        ("Peter Brown", "Paul Green", 0.0),
        ("", "Paul Green", 0.0),
    ],
)
def test_name_similarity_tiers(left: str, right: str, score: float) -> None:
    assert name_similarity(left, right) == pytest.approx(score)


def test_short_shared_surname_only_counts_as_overlap() -> None:
    assert name_similarity("Anna Li", "Wei Li") == pytest.approx(0.35)
