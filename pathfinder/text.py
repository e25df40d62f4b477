"""Deterministic text normalization and matching."""

import re

_WS_RE = re.compile(r"\s+")


def normalize_whitespace(text: str | None) -> str:
    """Collapse whitespace to single spaces."""
    if text is None:
        return ""
    return _WS_RE.sub(" ", str(text).replace("\n", " ").replace("\t", " ")).strip()


def fold(text: str | None) -> str:
    """Case-insensitive comparison form of a string."""
    return normalize_whitespace(text).casefold()


def contains_term(haystacks: list[str | None], term: str) -> bool:
    """True if the folded term is a substring of any folded haystack."""
    needle = fold(term)
    if not needle:
        return True
    return any(needle in fold(value) for value in haystacks if value)
