"""Domain primitives: scalar aliases + small value objects.

Genealogical dates are recorded as free text because providers disagree on
precision. ``parse_genealogical_date`` turns the common spellings into a
``GenealogicalDate`` so that comparisons can work on calendar values instead of
strings; anything it cannot read stays text.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Final

type ExternalId = str
type FieldName = str
type Predicate = str


class DateQualifier(StrEnum):
    EXACT = "exact"
    ABOUT = "about"
    BEFORE = "before"
    AFTER = "after"
    BETWEEN = "between"


@dataclass(frozen=True)
class PartialDate:
    year: int
    month: int | None = None
    day: int | None = None

    @property
    def as_date(self) -> date:
        return date(self.year, self.month or 1, self.day or 1)

    def __str__(self) -> str:
        if self.month is None:
            return f"{self.year:04d}"
        if self.day is None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(frozen=True)
class GenealogicalDate:
    start: PartialDate
    qualifier: DateQualifier = DateQualifier.EXACT
    end: PartialDate | None = None

    def comparison_key(self) -> tuple[object, ...]:
        """Key under which two dates are considered equal.

        Precision is part of the key: ``1847`` and ``1847-03-12`` differ.
        """
        return (self.qualifier, self.start, self.end)

    def __str__(self) -> str:
        if self.qualifier is DateQualifier.BETWEEN and self.end is not None:
            return f"between {self.start} and {self.end}"
        if self.qualifier is DateQualifier.EXACT:
            return str(self.start)
        return f"{self.qualifier} {self.start}"


_MONTHS: Final[dict[str, int]] = {
    **{name.lower(): index for index, name in enumerate(calendar.month_name) if name},
    **{name.lower(): index for index, name in enumerate(calendar.month_abbr) if name},
    "sept": 9,
}

_QUALIFIERS: Final[dict[str, DateQualifier]] = {
    "abt": DateQualifier.ABOUT,
    "about": DateQualifier.ABOUT,
    "circa": DateQualifier.ABOUT,
    "ca": DateQualifier.ABOUT,
    "c": DateQualifier.ABOUT,
    "est": DateQualifier.ABOUT,
    "estimated": DateQualifier.ABOUT,
    "bef": DateQualifier.BEFORE,
    "before": DateQualifier.BEFORE,
    "aft": DateQualifier.AFTER,
    "after": DateQualifier.AFTER,
}

_BETWEEN_WORDS: Final[frozenset[str]] = frozenset({"bet", "bet.", "btw", "between"})

_ISO_DATE = re.compile(r"(\d{3,4})(?:-(\d{1,2})(?:-(\d{1,2}))?)?")


def parse_genealogical_date(text: str | None) -> GenealogicalDate | None:
    """Parse the date spellings providers and users commonly write.

    Accepts ISO-like values (``1847``, ``1847-03``, ``1847-03-12``, zero
    components meaning unknown), day-month-year and month-day-year text
    (``12 Mar 1847``, ``March 12, 1847``), a leading qualifier (``abt.``,
    ``bef``, ``after``, ``~``) and ranges (``between 1840 and 1850``).
    Returns ``None`` for text that is not a recognisable date.
    """

    if text is None:
        return None
    cleaned = " ".join(text.strip().lower().replace(",", " ").split())
    if cleaned.startswith("~"):
        cleaned = "about " + cleaned[1:].strip()
    if not cleaned:
        return None

    head, _, rest = cleaned.partition(" ")
    if head in _BETWEEN_WORDS:
        start_text, separator, end_text = rest.partition(" and ")
        if not separator:
            start_text, separator, end_text = rest.partition(" - ")
        if not separator:
            return None
        start = _parse_plain(start_text)
        end = _parse_plain(end_text)
        if start is None or end is None:
            return None
        return GenealogicalDate(start=start, qualifier=DateQualifier.BETWEEN, end=end)

    qualifier = _QUALIFIERS.get(head.rstrip("."))
    if qualifier is None:
        qualifier = DateQualifier.EXACT
    else:
        cleaned = rest
    value = _parse_plain(cleaned)
    if value is None:
        return None
    return GenealogicalDate(start=value, qualifier=qualifier)


def _parse_plain(text: str) -> PartialDate | None:
    text = text.strip()
    iso = _ISO_DATE.fullmatch(text)
    if iso is not None:
        year_text, month_text, day_text = iso.groups()
        return _build(
            int(year_text),
            int(month_text) if month_text else None,
            int(day_text) if day_text else None,
        )

    year: int | None = None
    month: int | None = None
    day: int | None = None
    for raw_token in text.split():
        token = raw_token.rstrip(".")
        if token.isdigit():
            number = int(token)
            if len(token) >= 3 or number > 31:
                if year is not None:
                    return None
                year = number
            elif day is None:
                day = number
            else:
                return None
        elif token in _MONTHS:
            if month is not None:
                return None
            month = _MONTHS[token]
        else:
            return None

    if year is None or (day is not None and month is None):
        return None
    return _build(year, month, day)


def _build(year: int, month: int | None, day: int | None) -> PartialDate | None:
    # WikiTree style "1847-00-00": zero components are unknown
    month = month or None
    day = day or None
    if year <= 0:
        return None
    if month is None:
        return PartialDate(year=year) if day is None else None
    if not 1 <= month <= 12:
        return None
    if day is not None and not 1 <= day <= calendar.monthrange(year, month)[1]:
        return None
    return PartialDate(year=year, month=month, day=day)
