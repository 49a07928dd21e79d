"""
Levenshtein edit distance and the similarity ratio derived from it.
"""

from rapidfuzz.distance import Levenshtein


def levenshtein(a: str, b: str) -> int:
    """
    Minimum number of single-character inserts, deletes and substitutions
    turning `a` into `b`.

    >>> levenshtein("kitten", "sitting")
    3
    """
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    1 - distance / longest length, in [0, 1].

    Two empty strings are identical, so they score 1.0.
    """
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)
