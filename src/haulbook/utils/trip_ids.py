"""Trip ID generation.

Trip IDs follow the paper trip-sheet numbering: A1..A100, then B1..B100, up
to Z100. The first free ID is handed out, so IDs of deleted trips are reused.
"""

import string
from typing import Iterable

IDS_PER_LETTER = 100


def next_trip_id(existing_ids: Iterable[str]) -> str:
    """Return the first unused ID in A1..Z100 order.

    Raises:
        ValueError: If every ID up to Z100 is taken
    """
    taken = set(existing_ids)
    for letter in string.ascii_uppercase:
        for number in range(1, IDS_PER_LETTER + 1):
            candidate = f"{letter}{number}"
            if candidate not in taken:
                return candidate
    raise ValueError(f"No trip IDs left: all IDs up to Z{IDS_PER_LETTER} are in use")
