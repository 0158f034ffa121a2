"""Fuzzy title/artist matching for provider search results."""

import re
import unicodedata
from collections.abc import Iterable

from lyricsync.models.lyrics import Candidate

_PARENS_PATTERN = re.compile(r"\s*\([^)]*\)\s*")
_NON_WORD_PATTERN = re.compile(r"[^\w\s]")
_WHITESPACE_PATTERN = re.compile(r"\s+")

TITLE_WEIGHT = 0.55
ARTIST_WEIGHT = 0.45
CONFIDENT_THRESHOLD = 0.7
CONFIDENCE_BONUS = 0.1


def strip_parentheses(value: str) -> str:
    if not value:
        return value
    return _PARENS_PATTERN.sub(" ", value).strip()


def normalize(value: str) -> str:
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value.casefold())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    spaced = _NON_WORD_PATTERN.sub(" ", stripped)
    return _WHITESPACE_PATTERN.sub(" ", spaced).strip()


def similarity(
    requested: str,
    candidate: str,
    partial_weight: float = 0.5,
    min_partial_length: int = 4,
) -> float:
    """Score how well ``candidate`` matches ``requested``, 0.0 to 1.0.

    The partial-containment credit is a heuristic: any requested word of
    ``min_partial_length`` or more characters that is a substring of a
    candidate word (or vice versa) earns ``partial_weight``.
    """
    norm_requested = normalize(requested)
    norm_candidate = normalize(candidate)
    if not norm_requested or not norm_candidate:
        return 0.0
    if norm_requested == norm_candidate:
        return 1.0
    if norm_requested in norm_candidate:
        return 0.9
    if norm_candidate in norm_requested:
        return 0.85

    requested_words = set(norm_requested.split(" "))
    candidate_words = set(norm_candidate.split(" "))

    matched = 0.0
    for word in requested_words:
        if word in candidate_words:
            matched += 1
        elif len(word) >= min_partial_length:
            if any(word in other or other in word for other in candidate_words):
                matched += partial_weight
    return (matched / len(requested_words)) * 0.8


def score(candidate: Candidate, requested_title: str, requested_artist: str) -> float:
    """Combined match score in [0, 1.1]."""
    title_score = similarity(strip_parentheses(requested_title), strip_parentheses(candidate.title))
    artist_score = similarity(strip_parentheses(requested_artist), strip_parentheses(candidate.artist))
    combined = TITLE_WEIGHT * title_score + ARTIST_WEIGHT * artist_score
    if title_score >= CONFIDENT_THRESHOLD and artist_score >= CONFIDENT_THRESHOLD:
        combined += CONFIDENCE_BONUS
    return combined


def rank(candidates: Iterable[Candidate], requested_title: str, requested_artist: str) -> list[Candidate]:
    """Score and sort candidates, best first. Ties keep provider order."""
    scored = [
        c.model_copy(update={"score": round(score(c, requested_title, requested_artist), 3)})
        for c in candidates
    ]
    scored.sort(key=lambda c: c.score, reverse=True)
    return scored
