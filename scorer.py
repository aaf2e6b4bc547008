"""Edit-distance similarity between a target word and a transcript."""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def _normalize(text: str) -> str:
    return (text or "").strip().casefold()


def score(target: str, candidate: str) -> int:
    """Return closeness of ``candidate`` to ``target`` as an integer in [0, 100].

    Both strings are trimmed and case-folded. The Levenshtein distance is
    normalised by the longer string, so one wrong letter in a five letter
    word costs 20 points. Two empty strings are identical (100).
    """
    a = _normalize(target)
    b = _normalize(candidate)
    longest = max(len(a), len(b))
    if longest == 0:
        return 100
    distance = Levenshtein.distance(a, b)
    # round half up in integer arithmetic: floor(100 * (L - d) / L + 0.5)
    value = (200 * (longest - distance) + longest) // (2 * longest)
    return max(0, min(100, value))


class LevenshteinScorer:
    def score(self, target: str, candidate: str) -> int:
        return score(target, candidate)
