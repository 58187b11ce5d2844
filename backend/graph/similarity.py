"""
Name similarity strategies used when the mutator has to match a relationship
endpoint name that is not in the resolution cache.

Strategies are tried in order by ``CompositeSimilarity``: exact normalized
match, case-insensitive containment in either direction, then a hybrid
character/token score above a threshold.
"""

import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Iterable, Optional, Protocol, Set, Tuple

from models.graph import normalize_name


def _tokenize(value: str) -> Set[str]:
    return {token for token in re.split(r"[\s\-_/]+", value) if token}


class SimilarityStrategy(Protocol):
    def score(self, query: str, candidate: str) -> float:
        """Return a score in [0, 1]; 0 means no match."""
        ...


class ExactMatch:
    def score(self, query: str, candidate: str) -> float:
        return 1.0 if normalize_name(query) == normalize_name(candidate) else 0.0


class ContainmentMatch:
    """Case-insensitive substring match in either direction."""

    def __init__(self, weight: float = 0.9, min_length: int = 3):
        self.weight = weight
        self.min_length = min_length

    def score(self, query: str, candidate: str) -> float:
        left, right = normalize_name(query), normalize_name(candidate)
        if len(left) < self.min_length or len(right) < self.min_length:
            return 0.0
        if left in right or right in left:
            # Prefer the candidate whose length is closest to the query
            return self.weight * min(len(left), len(right)) / max(len(left), len(right))
        return 0.0


class TokenOverlapMatch:
    """0.55 * SequenceMatcher ratio + 0.45 * token Jaccard, zeroed below threshold."""

    def __init__(self, threshold: float = 0.85):
        self.threshold = threshold

    def score(self, query: str, candidate: str) -> float:
        left, right = normalize_name(query), normalize_name(candidate)
        if not left or not right:
            return 0.0
        if left == right:
            return 1.0

        left_tokens, right_tokens = _tokenize(left), _tokenize(right)
        if not left_tokens or not right_tokens:
            return 0.0

        jaccard = len(left_tokens & right_tokens) / len(left_tokens | right_tokens)
        char_ratio = SequenceMatcher(None, left, right).ratio()
        score = 0.55 * char_ratio + 0.45 * jaccard
        return score if score >= self.threshold else 0.0


@dataclass
class SimilarityMatch:
    name: str
    score: float
    strategy: str


class CompositeSimilarity:
    """Runs strategies in order; the first one producing any match wins."""

    def __init__(self, strategies: Optional[list] = None, threshold: float = 0.85):
        self.strategies = strategies or [
            ExactMatch(),
            ContainmentMatch(),
            TokenOverlapMatch(threshold=threshold),
        ]

    def best_match(self, query: str, candidates: Iterable[str]) -> Optional[SimilarityMatch]:
        candidates = [c for c in candidates if c]
        if not query or not candidates:
            return None

        for strategy in self.strategies:
            best: Optional[Tuple[float, str]] = None
            for candidate in candidates:
                score = strategy.score(query, candidate)
                if score > 0 and (best is None or score > best[0]):
                    best = (score, candidate)
            if best is not None:
                return SimilarityMatch(name=best[1], score=best[0], strategy=type(strategy).__name__)
        return None
