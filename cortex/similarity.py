"""Deterministic word-overlap similarity provider.

Baseline implementation of the SimilarityProvider contract using the Dice
coefficient over lower-cased whitespace tokens. Reproducible and dependency
free; plug an embedding-backed provider in for meaning-level matching.
"""

import logging
from typing import List, Sequence

from cortex.protocols import SimilarityMatch

logger = logging.getLogger(__name__)


def _tokens(text: str) -> frozenset:
    return frozenset(text.lower().split())


class WordOverlapSimilarity:
    """Dice coefficient over word sets.

    score = 2 * |A & B| / (|A| + |B|), with exact (case-insensitive,
    whitespace-trimmed) matches short-circuiting to 1.0.
    """

    name = "word-overlap"

    def score(self, text_a: str, text_b: str) -> float:
        a = text_a.lower().strip()
        b = text_b.lower().strip()
        if a == b:
            return 1.0

        words_a = _tokens(a)
        words_b = _tokens(b)
        if not words_a or not words_b:
            return 0.0

        overlap = len(words_a & words_b)
        return (2 * overlap) / (len(words_a) + len(words_b))

    def rank(
        self, query: str, candidates: Sequence[str], threshold: float
    ) -> List[SimilarityMatch]:
        matches = []
        for i, candidate in enumerate(candidates):
            s = self.score(query, candidate)
            if s >= threshold:
                matches.append(SimilarityMatch(index=i, score=s, text=candidate))

        # sorted() is stable, so equal scores keep candidate order
        return sorted(matches, key=lambda m: m.score, reverse=True)
