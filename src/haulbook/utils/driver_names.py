"""Driver name normalization.

Trips record the driver as typed on the trip sheet. Truckers are matched
through a normalized key so "Juan  Pérez " and "juan pérez" land on the
same account, without any fuzzy or partial matching.
"""

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_driver_name(name: str) -> str:
    """Return the lookup key for a driver name: trimmed, single-spaced, case-folded."""
    if name is None:
        return ""
    return _WHITESPACE.sub(" ", name.strip()).casefold()
