"""
Aggregator and ranker.
Turns base scores into final scores, merges all sources through one
fingerprint registry and returns the bounded, ordered result set.
"""

from typing import Iterable, List, Optional

from pronet.analyzers.classifier import Mode, MUTATING_METHODS
from pronet.core.normalizer import URLNormalizer
from pronet.core.registry import CandidateRegistry
from pronet.models import Category, ContentCandidate, NetworkCallCandidate


API_SHAPE_BOOST = 0.2
INTERNAL_BOOST = 0.1
MUTATING_BOOST = 0.1

FIXED_SCORES = {
    Category.SITEMAP: 0.9,
    Category.ROBOTS: 0.95,
    Category.MANIFEST: 0.9,
}


def clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


class Ranker:

    def __init__(self):
        self.normalizer = URLNormalizer()

    def network_fingerprint(self, candidate: NetworkCallCandidate) -> str:
        return f"{self.normalizer.fingerprint(candidate.url)}|{candidate.method}|{candidate.origin.value}"

    def final_score(self, candidate: NetworkCallCandidate) -> float:
        if candidate.category in FIXED_SCORES:
            return FIXED_SCORES[candidate.category]

        score = candidate.score
        if self.normalizer.has_api_shape(candidate.url):
            score += API_SHAPE_BOOST
        if self.normalizer.has_internal_shape(candidate.url):
            score += INTERNAL_BOOST
        if candidate.method in MUTATING_METHODS:
            score += MUTATING_BOOST
        return clamp(score)

    def rank_network(self, candidates: Iterable[NetworkCallCandidate], mode: Mode,
                     cap: Optional[int] = None) -> List[NetworkCallCandidate]:
        registry: CandidateRegistry = CandidateRegistry(key=self.network_fingerprint)

        for candidate in candidates:
            if not mode.accepts(candidate):
                continue
            candidate.score = self.final_score(candidate)
            registry.offer(candidate)

        return registry.ranked(cap if cap is not None else mode.cap)

    def rank_content(self, registry: CandidateRegistry, cap: int = 200) -> List[ContentCandidate]:
        for candidate in registry:
            candidate.score = clamp(candidate.score)
        return registry.ranked(cap)
