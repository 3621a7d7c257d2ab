"""Weekday notation used by the academic system, mapped to RFC 5545 BYDAY codes.

The academic timetable writes days as two-letter Spanish abbreviations
(``LU,MI``). Older rows use single letters; those are accepted through a fixed
table where ``M`` is always Tuesday and Wednesday is ``W`` or ``X``.
"""

import re

SPANISH_DAY_CODES = {
    "LU": "MO",
    "MA": "TU",
    "MI": "WE",
    "JU": "TH",
    "VI": "FR",
    "SA": "SA",
    "DO": "SU",
}

LEGACY_DAY_CODES = {
    "L": "MO",
    "M": "TU",
    "W": "WE",
    "X": "WE",
    "J": "TH",
    "V": "FR",
    "S": "SA",
    "D": "SU",
}

_DELIMITERS = re.compile(r"[,;/\-\s]+")


def translate_day_codes(days: str) -> str:
    """Return comma-joined BYDAY codes for ``days``; unknown tokens are dropped.

    An empty result means there is nothing to repeat on and no recurrence
    must be built from it.
    """
    if not days:
        return ""
    out = []
    for token in _DELIMITERS.split(days.strip().upper()):
        code = SPANISH_DAY_CODES.get(token) or LEGACY_DAY_CODES.get(token)
        if code:
            out.append(code)
    return ",".join(out)
