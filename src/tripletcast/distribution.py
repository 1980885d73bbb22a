"""
Smoothed probability distributions over the 1000 triplets.

Two models are built from counter statistics and blended:

- Triplet model (Laplace/Dirichlet smoothing of exact-value counts):
      P_trip(t) = (count_t + alpha_triplet) / (N + 1000 * alpha_triplet)
- Positional-independence model, one smoothed marginal per position:
      p_p(d) = (count_{p,d} + alpha_pos) / (N + 10 * alpha_pos)
      P_pos(abc) = p_0(a) * p_1(b) * p_2(c), renormalized over 1000 triplets

Final distribution: mix * P_trip + (1 - mix) * P_pos.

An empty counter with a zero pseudo-count has no defined frequencies; that
side of the mixture falls back to uniform instead of failing.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .config import EngineConfig
from .counter import Counter, CounterSnapshot, N_DIGITS, N_POSITIONS

logger = logging.getLogger(__name__)

N_TRIPLETS = 1000
TRIPLETS: Tuple[str, ...] = tuple(f"{i:03d}" for i in range(N_TRIPLETS))

CounterLike = Union[Counter, CounterSnapshot]


def as_snapshot(counter: CounterLike) -> CounterSnapshot:
    if isinstance(counter, Counter):
        return counter.snapshot()
    return counter


def uniform_probs() -> np.ndarray:
    return np.full(N_TRIPLETS, 1.0 / N_TRIPLETS)


@dataclass(frozen=True, eq=False)
class Distribution:
    """
    Probabilities for all 1000 triplets, indexed by int(triplet).

    The probs array is read-only; sum_of_squares is precomputed for the
    closed-form multi-class Brier score.
    """
    probs: np.ndarray
    sum_of_squares: float
    observations_used: int = 0

    def __getitem__(self, triplet: str) -> float:
        return float(self.probs[int(triplet)])

    def __len__(self) -> int:
        return N_TRIPLETS

    def as_dict(self) -> Dict[str, float]:
        return {t: float(p) for t, p in zip(TRIPLETS, self.probs)}

    def ordering(self) -> np.ndarray:
        """Triplet indices sorted by probability desc, ties by ascending triplet."""
        return np.lexsort((np.arange(N_TRIPLETS), -self.probs))

    def rank_of(self, triplet: str) -> int:
        """
        1-based rank of triplet in ordering().

        Counted directly instead of sorting: strictly more probable
        triplets plus equally probable triplets that sort before it.
        """
        idx = int(triplet)
        p = self.probs[idx]
        higher = int(np.count_nonzero(self.probs > p))
        tied_before = int(np.count_nonzero(self.probs[:idx] == p))
        return higher + tied_before + 1

    def top(self, n: int) -> List[Tuple[str, float]]:
        return [(TRIPLETS[i], float(self.probs[i])) for i in self.ordering()[:n]]


def triplet_model(counter: CounterLike, alpha: float = 1.0) -> np.ndarray:
    """
    Laplace-smoothed exact-value frequencies.

    Args:
        counter: Source counts
        alpha: Pseudo-count added to every triplet

    Returns:
        Array of 1000 probabilities summing to 1
    """
    snap = as_snapshot(counter)
    denom = snap.total + alpha * N_TRIPLETS
    if denom <= 0:
        logger.debug("Empty counter with alpha_triplet=0, triplet model is uniform")
        return uniform_probs()

    counts = np.zeros(N_TRIPLETS)
    for triplet, c in snap.triplet_counts.items():
        counts[int(triplet)] = c
    return (counts + alpha) / denom


def positional_marginals(counter: CounterLike, alpha: float = 1.0) -> np.ndarray:
    """
    Smoothed per-position digit distributions, shape (3, 10).

    Rows for an empty counter with alpha=0 are all zeros.
    """
    snap = as_snapshot(counter)
    counts = np.array(snap.position_counts, dtype=float)
    denom = snap.total + alpha * N_DIGITS
    if denom <= 0:
        return np.zeros((N_POSITIONS, N_DIGITS))
    return (counts + alpha) / denom


def positional_model(counter: CounterLike, alpha: float = 1.0) -> np.ndarray:
    """
    Positional-independence joint distribution.

    Product of the three marginals, renormalized over all 1000 triplets.
    Index a*100 + b*10 + c is triplet "abc", so the outer product flattens
    directly into triplet order.
    """
    p0, p1, p2 = positional_marginals(counter, alpha)
    joint = np.multiply.outer(np.multiply.outer(p0, p1), p2).reshape(N_TRIPLETS)
    total = joint.sum()
    if total <= 0:
        logger.debug("Positional product sums to zero, positional model is uniform")
        return uniform_probs()
    return joint / total


def mix_models(p_trip: np.ndarray, p_pos: np.ndarray, mix: float) -> np.ndarray:
    """Convex combination mix * p_trip + (1 - mix) * p_pos."""
    if mix == 1.0:
        return p_trip.copy()
    if mix == 0.0:
        return p_pos.copy()
    return mix * p_trip + (1.0 - mix) * p_pos


def build_distribution(
    counter: CounterLike,
    config: Optional[EngineConfig] = None,
    positional_counter: Optional[CounterLike] = None
) -> Distribution:
    """
    Build the mixed distribution for a counter.

    Args:
        counter: Counts for the triplet model
        config: Engine settings (alpha_triplet, alpha_pos, mix)
        positional_counter: Counts for the positional model (defaults to counter)

    Returns:
        Distribution over all 1000 triplets
    """
    if config is None:
        config = EngineConfig()

    snap = as_snapshot(counter)
    pos_snap = snap if positional_counter is None else as_snapshot(positional_counter)

    p_trip = triplet_model(snap, config.alpha_triplet)
    p_pos = positional_model(pos_snap, config.alpha_pos)
    final = mix_models(p_trip, p_pos, config.mix)
    final.setflags(write=False)

    return Distribution(
        probs=final,
        sum_of_squares=float(np.dot(final, final)),
        observations_used=snap.total,
    )
