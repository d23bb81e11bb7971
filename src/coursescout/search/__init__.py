"""
Search Module - Fuzzy matching of names and content.
====================================================

- matcher: similarity scoring, best-match resolution, relevance ranking
"""

from coursescout.search.matcher import find_best_match, rank_matches, relevance, similarity

__all__ = [
    "find_best_match",
    "rank_matches",
    "relevance",
    "similarity",
]
