"""
Top-N candidate ranking.

Two named strategies share one entry point, rank_candidates():

exact
    Sort the full 1000-entry mixed distribution and slice. Scores are
    mixed (smoothed) probabilities.

approximate
    Candidates come from two sources scored on unsmoothed frequencies:
    every triplet seen at least once (count / total), and the Cartesian
    product of the top-K digits per position (product of per-position
    frequencies). A candidate's score is the larger of its two source
    scores. Observed triplets are never dropped from candidate
    generation, but the list is not guaranteed to be the global top-N of
    the mixed distribution.

The two strategies can disagree, most visibly on sparse counters where
the smoothing in the exact strategy pulls scores toward uniform. Both
sort by score descending with ties broken by ascending triplet.
"""

import itertools
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .config import EngineConfig
from .counter import N_DIGITS
from .distribution import TRIPLETS, CounterLike, as_snapshot, build_distribution


class RankingError(Exception):
    """Raised when an unknown ranking strategy is requested."""
    pass


@dataclass(frozen=True)
class RankedCandidate:
    """One ranked triplet with its score and raw observation count."""
    triplet: str
    score: float
    count: int

    def label(self) -> str:
        return f"{self.triplet} (score:{self.score * 100:.4f}%, count:{self.count})"


def _sorted_top(scores: Dict[str, float], top_n: int) -> List[tuple]:
    return sorted(scores.items(), key=lambda item: (-item[1], item[0]))[:top_n]


def top_digits(frequencies, k: int) -> List[str]:
    """k most frequent digits, ties by ascending digit."""
    order = sorted(range(N_DIGITS), key=lambda d: (-frequencies[d], d))
    return [str(d) for d in order[:k]]


def rank_approximate(counter: CounterLike, config: EngineConfig) -> List[RankedCandidate]:
    """Observed triplets plus the top-K-per-position Cartesian product."""
    snap = as_snapshot(counter)
    scores: Dict[str, float] = {}

    if snap.total > 0:
        for triplet, c in snap.triplet_counts.items():
            scores[triplet] = c / snap.total

    freqs = snap.position_frequencies()
    k = config.top_k_per_position
    tops = [top_digits(freqs[p], k) for p in range(3)]
    for a, b, c in itertools.product(*tops):
        score = freqs[0][int(a)] * freqs[1][int(b)] * freqs[2][int(c)]
        triplet = a + b + c
        scores[triplet] = max(scores.get(triplet, 0.0), score)

    return [
        RankedCandidate(triplet=t, score=s, count=snap.triplet_counts.get(t, 0))
        for t, s in _sorted_top(scores, config.top_n)
    ]


def rank_exact(counter: CounterLike, config: EngineConfig) -> List[RankedCandidate]:
    """Global top-N of the mixed distribution."""
    snap = as_snapshot(counter)
    dist = build_distribution(snap, config)
    return [
        RankedCandidate(
            triplet=TRIPLETS[i],
            score=float(dist.probs[i]),
            count=snap.triplet_counts.get(TRIPLETS[i], 0),
        )
        for i in dist.ordering()[:config.top_n]
    ]


RANKING_STRATEGIES: Dict[str, Callable[[CounterLike, EngineConfig], List[RankedCandidate]]] = {
    "exact": rank_exact,
    "approximate": rank_approximate,
}


def rank_candidates(
    counter: CounterLike,
    config: Optional[EngineConfig] = None,
    strategy: Optional[str] = None
) -> List[RankedCandidate]:
    """
    Rank candidate triplets for presentation.

    Args:
        counter: Evidence counts
        config: Engine settings (top_n, top_k_per_position, ranking_strategy)
        strategy: "exact" or "approximate" (defaults to config.ranking_strategy)

    Returns:
        Up to top_n RankedCandidate, best first

    Raises:
        RankingError: If strategy is unknown
    """
    if config is None:
        config = EngineConfig()
    name = strategy or config.ranking_strategy
    try:
        ranker = RANKING_STRATEGIES[name]
    except KeyError:
        raise RankingError(f"Unknown ranking strategy: {name}")
    return ranker(counter, config)
