"""
Gazetteer of Baldwin County place names used for article tagging.

Matching is a case-insensitive substring test over title + excerpt,
so "Mobile" also tags "Mobile Bay" stories.
"""

KNOWN_PLACES: tuple[str, ...] = (
    "Orange Beach",
    "Gulf Shores",
    "Foley",
    "Baldwin County",
    "Mobile",
    "Fairhope",
    "Daphne",
)


def get_known_places() -> list[str]:
    """Return a copy of the gazetteer."""
    return list(KNOWN_PLACES)
