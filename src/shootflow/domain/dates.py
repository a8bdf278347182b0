"""Parsing of human-entered shoot date descriptors."""

import re
from datetime import date

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
_RANGE_SEPARATOR = re.compile(r"\s*[-–]\s*")
_YEAR = re.compile(r"\b(\d{4})\b")


def parse_end_date(descriptor: str | None, reference: date) -> date | None:
    """Return the last day of a descriptor like "Oct 12-13" or "Oct 30 - Nov 2".

    The year defaults to the reference year unless the descriptor names one,
    in which case the last named year is the year of the end date. A range
    that crosses a year boundary ("Dec 30 - Jan 2") ends in the year after
    the reference date, unless the reference date already falls in or
    before the end month, when the range is the one just finishing.
    Returns None when the descriptor cannot be understood.
    """
    if not descriptor:
        return None
    text = descriptor.replace(",", " ").strip()
    year = reference.year
    years = _YEAR.findall(text)
    if years:
        year = int(years[-1])
        text = _YEAR.sub(" ", text).strip()

    parts = [part for part in _RANGE_SEPARATOR.split(text) if part]
    if not parts:
        return None
    start_tokens = parts[0].split()
    end_tokens = parts[-1].split()
    start_month = _parse_month(start_tokens[0]) if start_tokens else None

    if len(end_tokens) == 2:  # noqa: PLR2004
        month = _parse_month(end_tokens[0])
        day = _parse_day(end_tokens[1])
    elif len(end_tokens) == 1:
        month = start_month
        day = _parse_day(end_tokens[0])
    else:
        return None
    if month is None or day is None:
        return None
    if start_month is not None and month < start_month:
        # Crossing into January. A named year belongs to the end date.
        if not years and reference.month > month:
            year += 1
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_month(token: str) -> int | None:
    return _MONTHS.get(token[:3].lower())


def _parse_day(token: str) -> int | None:
    return int(token) if token.isdigit() else None
