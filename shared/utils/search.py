"""
shared/utils/search.py
Substring search helpers for LIKE queries.
"""

LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """Lowercased `%term%` with LIKE wildcards in `term` matched literally."""
    escaped = (
        term.lower()
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
