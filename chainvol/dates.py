"""
Expiry labels to day-counts.

Labels come straight out of the scraped table and are usually French
("12 févr. 2026"), sometimes English ("Feb 12, 2026"), sometimes ISO.
Explicit user queries are always ISO (YYYY-MM-DD) and go through
date_string_to_days instead, so the two formats never mix in one call.

"now" is always passed in. Nothing here reads the wall clock, which keeps
every conversion reproducible in tests.
"""

import math
import re
from datetime import date, datetime
from typing import Optional, Union

import pandas as pd

DateLike = Union[date, datetime, pd.Timestamp, str]


# month words, lowercase, without trailing period
MONTHS = {
    # French
    "janv": 1, "févr": 2, "fevr": 2, "fév": 2, "fev": 2, "mars": 3,
    "avr": 4, "mai": 5, "juin": 6, "juil": 7, "août": 8, "aout": 8,
    "sept": 9, "oct": 10, "nov": 11, "déc": 12,
    # English
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "dec": 12,
}

# scraped label style, used when formatting
FRENCH_MONTH_LABELS = (
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
)

_DAY_MONTH_YEAR_RE = re.compile(r"(\d{1,2})\s+(\w+)\.?\s+(\d{4})")
_MONTH_DAY_YEAR_RE = re.compile(r"(\w+)\.?\s+(\d{1,2}),?\s+(\d{4})")
_ISO_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_DIGIT_RE = re.compile(r"\d")


def _to_day(value: DateLike) -> pd.Timestamp:
    """Naive Timestamp truncated to midnight."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def _days_between(target: pd.Timestamp, now: DateLike) -> Optional[int]:
    if target.tzinfo is not None:
        target = target.tz_localize(None)
    days = math.ceil((target - _to_day(now)) / pd.Timedelta(days=1))
    return days if days > 0 else None


def month_number(word: str) -> Optional[int]:
    """
    Resolve a French or English month word to 1..12.

    Abbreviations are matched directly; full names ("février",
    "September") fall back to their 4- then 3-letter prefix.
    """
    key = word.lower().rstrip(".")
    for candidate in (key, key[:4], key[:3]):
        if candidate in MONTHS:
            return MONTHS[candidate]
    return None


def _generic_parse(text: str) -> Optional[pd.Timestamp]:
    try:
        ts = pd.Timestamp(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts


def _build_date(year: str, month: Optional[int], day: str) -> Optional[pd.Timestamp]:
    if month is None:
        return None
    try:
        return pd.Timestamp(year=int(year), month=month, day=int(day))
    except ValueError:
        return None


def parse_days_to_expiry(label: Optional[str], now: DateLike) -> Optional[int]:
    """
    Convert a scraped expiry label into whole days from `now`.

    Parameters
    ----------
    label : expiry text, e.g. "12 févr. 2026", "Feb 12, 2026", "2026-02-12"
    now : reference date; only the calendar day is used

    Returns
    -------
    int or None : days to expiry, None if the label can't be read or the
                  expiry is today or in the past
    """
    if not label or not label.strip():
        return None
    text = label.strip()
    # a real expiry has a day and a year; this also keeps "today"/"now"
    # away from the generic parser, which would read the wall clock
    if not _DIGIT_RE.search(text):
        return None

    direct = _generic_parse(text)
    if direct is not None:
        return _days_between(direct, now)

    m = _DAY_MONTH_YEAR_RE.search(text)
    if m:
        target = _build_date(m.group(3), month_number(m.group(2)), m.group(1))
        if target is not None:
            return _days_between(target, now)

    m = _MONTH_DAY_YEAR_RE.search(text)
    if m:
        target = _build_date(m.group(3), month_number(m.group(1)), m.group(2))
        if target is not None:
            return _days_between(target, now)

    return None


def date_string_to_days(iso_date: Optional[str], now: DateLike) -> Optional[int]:
    """Days from `now` to an ISO YYYY-MM-DD date; None if invalid or not in the future."""
    if not iso_date or not _ISO_RE.fullmatch(iso_date.strip()):
        return None
    try:
        target = datetime.strptime(iso_date.strip(), "%Y-%m-%d")
    except ValueError:
        return None
    return _days_between(pd.Timestamp(target), now)


def format_french_date(day: DateLike) -> str:
    """Render a date the way the scraped table labels it ("12 févr. 2026")."""
    ts = pd.Timestamp(day)
    return f"{ts.day} {FRENCH_MONTH_LABELS[ts.month - 1]} {ts.year}"
