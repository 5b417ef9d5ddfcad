"""
Keyword-based emergency triage.

Runs before any AI call: if the user's text contains an emergency phrase the
pipeline stops and the user is told to seek immediate care.
"""

from collections.abc import Sequence


def detect_emergency(text: str | None, keywords: Sequence[str]) -> bool:
    """
    Check whether the text contains any emergency keyword.

    Matching is a case-insensitive substring test. Empty or non-string
    input is never an emergency.
    """
    if not text or not isinstance(text, str):
        return False

    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def matched_keywords(text: str | None, keywords: Sequence[str]) -> list[str]:
    """Return every keyword found in the text, in keyword order."""
    if not text or not isinstance(text, str):
        return []

    lowered = text.lower()
    return [keyword for keyword in keywords if keyword.lower() in lowered]
