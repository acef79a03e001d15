# ABOUTME: Lenient date parsing used to validate publication dates during the merge.
# ABOUTME: Tries ISO, then numeric day/month patterns, then dateutil for textual dates.

import re
from datetime import datetime

from dateutil import parser as dateutil_parser

# US order first, international second; the first pattern that parses wins.
_NUMERIC_PATTERNS = (
    "%m-%d-%Y %H:%M:%S",
    "%m-%d-%Y %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%m-%d-%Y",
    "%d-%m-%Y",
)

_DIGIT_RE = re.compile(r"\d")

# Amazon style abbreviations: "12 jan. 2017"
_ABBREV_DOT_RE = re.compile(r"(?<=[A-Za-z])\.(?=\s|$)")

# Sentinel default: a parsed year of 1 means the text carried no year at all.
_NO_YEAR = datetime(1, 1, 1)


def parse_date(text: str | None) -> datetime | None:
    """Parse a date string from a provider into a datetime.

    Accepts ISO-8601 ("2017-01-12", "2017-01"), numeric "MM-dd-yyyy" /
    "dd-MM-yyyy" forms with optional time, and textual forms such as
    "12 jan. 2017", "May 5, 2012" or "Jan 2012". A missing day becomes 1.

    Returns:
        The parsed datetime, or None if the text is not a recognizable date.
    """
    if text is None:
        return None
    text = text.strip()
    if not text or not _DIGIT_RE.search(text):
        return None

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    # "2017-01" is not accepted by fromisoformat
    if re.fullmatch(r"\d{4}-\d{2}", text):
        try:
            return datetime.strptime(text, "%Y-%m")
        except ValueError:
            return None

    for pattern in _NUMERIC_PATTERNS:
        try:
            return datetime.strptime(text, pattern)
        except ValueError:
            continue

    try:
        parsed = dateutil_parser.parse(_ABBREV_DOT_RE.sub("", text), default=_NO_YEAR)
    except (ValueError, OverflowError):
        return None
    if parsed.year == _NO_YEAR.year:
        return None
    return parsed


def is_valid_date(text: str | None) -> bool:
    return parse_date(text) is not None


def to_iso_date(value: datetime) -> str:
    """Format as YYYY-MM-DD, the form dates are stored in after a merge."""
    return value.strftime("%Y-%m-%d")
