"""
Matcher Module - Fuzzy resolution of free-text names.
=====================================================

Resolves human-entered names (course names, page titles, file names)
to records by scoring candidate fields against a query.

Scoring, on normalized text (lowercase, punctuation to spaces):
- Exact match: 1.0
- Substring containment: 0.6 + 0.3 * shorter/longer
- Token overlap: 0.8 * shared/union
- difflib ratio * 0.7 for typos

The score of a field is the best of these. Only relative ranking and
tie-break order matter to callers.
"""

from difflib import SequenceMatcher
from typing import Any, Iterable, Optional, Sequence

from coursescout.shared.config import get_settings
from coursescout.shared.logging import get_logger
from coursescout.shared.utils import normalize_text

logger = get_logger(__name__)

EXACT_SCORE = 1.0
SUBSTRING_BASE = 0.6
SUBSTRING_SPAN = 0.3
TOKEN_WEIGHT = 0.8
SEQUENCE_WEIGHT = 0.7


# ─────────────────────────────────────────────────────────────────────────────
# Scoring
# ─────────────────────────────────────────────────────────────────────────────


def similarity(query: Optional[str], text: Optional[str]) -> float:
    """
    Score how well ``text`` matches ``query`` (0.0 to 1.0).

    Example:
        >>> similarity("CS 101", "cs-101")
        1.0
        >>> similarity("CS 101", "CS 101 Lab")
        0.78
    """
    left = normalize_text(query)
    right = normalize_text(text)
    if not left or not right:
        return 0.0
    if left == right:
        return EXACT_SCORE

    scores = []

    if left in right or right in left:
        shorter, longer = sorted((len(left), len(right)))
        scores.append(SUBSTRING_BASE + SUBSTRING_SPAN * shorter / longer)

    left_tokens = set(left.split())
    right_tokens = set(right.split())
    shared = left_tokens & right_tokens
    if shared:
        scores.append(TOKEN_WEIGHT * len(shared) / len(left_tokens | right_tokens))

    scores.append(SEQUENCE_WEIGHT * SequenceMatcher(None, left, right).ratio())

    return round(max(scores), 6)


def relevance(query: Optional[str], text: Optional[str]) -> float:
    """
    Score ``text`` for smart search.

    Long bodies rarely match a short query as a whole, so besides the plain
    similarity this also rewards the share of query tokens found in the text.
    """
    base = similarity(query, text)
    query_tokens = set(normalize_text(query).split())
    if not query_tokens:
        return 0.0

    text_tokens = set(normalize_text(text).split())
    coverage = len(query_tokens & text_tokens) / len(query_tokens)
    return round(max(base, 0.75 * coverage), 6)


def _field_value(candidate: Any, field_name: str) -> Optional[str]:
    if isinstance(candidate, dict):
        value = candidate.get(field_name)
    else:
        value = getattr(candidate, field_name, None)
    if value is None:
        return None
    return str(value)


def _best_field_score(query: str, candidate: Any, fields: Sequence[str]) -> tuple[float, int]:
    """Best score over a candidate's fields and the index of the field that gave it."""
    best_score = 0.0
    best_field = len(fields)
    for index, field_name in enumerate(fields):
        score = similarity(query, _field_value(candidate, field_name))
        # Strictly greater keeps the earlier field on ties
        if score > best_score:
            best_score = score
            best_field = index
    return best_score, best_field


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def rank_matches(
    query: str,
    candidates: Iterable[Any],
    fields: Sequence[str],
    threshold: Optional[float] = None,
) -> list[tuple[Any, float]]:
    """
    Rank every candidate that clears the threshold.

    Ordering: higher score, then earlier matching field, then earlier
    candidate.

    Returns:
        List of (candidate, score) tuples, best first
    """
    if not fields:
        raise ValueError("At least one field name is required")
    if threshold is None:
        threshold = get_settings().search.match_threshold

    scored = []
    for position, candidate in enumerate(candidates):
        score, field_index = _best_field_score(query, candidate, fields)
        if score >= threshold and score > 0:
            scored.append((-score, field_index, position, candidate))

    scored.sort(key=lambda item: item[:3])
    return [(candidate, -neg_score) for neg_score, _, _, candidate in scored]


def find_best_match(
    query: str,
    candidates: Iterable[Any],
    fields: Sequence[str],
    threshold: Optional[float] = None,
) -> Optional[Any]:
    """
    Find the candidate that best matches a free-text query.

    Args:
        query: Text entered by the user
        candidates: Dicts or objects to search
        fields: Field names to compare, in priority order
        threshold: Minimum score (defaults to search.match_threshold)

    Returns:
        The best candidate, or None if nothing clears the threshold

    Example:
        >>> courses = [
        ...     {"name": "Intro to CS", "course_code": "CS 101"},
        ...     {"name": "CS 101 Lab"},
        ... ]
        >>> find_best_match("CS 101", courses, ["name", "course_code"])["name"]
        'Intro to CS'
    """
    if not query or not str(query).strip():
        return None

    ranked = rank_matches(query, candidates, fields, threshold)
    if not ranked:
        logger.debug(f"No match for {query!r}")
        return None

    best, score = ranked[0]
    logger.debug(f"Best match for {query!r}: score={score:.3f}")
    return best
