"""
Scoring metrics for triplet forecasts.

Per-step metrics are computed against a full 1000-class distribution:

- Multi-class Brier score over a one-hot target:
      Brier = sum_i (p_i - y_i)^2 = sum_i p_i^2 - 2 * p_true + 1
  Range [0, 2], lower is better. A uniform forecast scores 0.999.
- Reciprocal rank 1 / rank of the true triplet.
- Log score log(p_true), higher (less negative) is better.

summarize_steps() aggregates per-step results into a BacktestSummary.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

N_CLASSES = 1000

# Brier score of the uniform forecast: 1000 * (1/1000)^2 - 2/1000 + 1
UNIFORM_BRIER = 1.0 / N_CLASSES - 2.0 / N_CLASSES + 1.0


class ScoringError(Exception):
    """Raised when scoring fails."""
    pass


def multiclass_brier(sum_of_squares: float, p_true: float) -> float:
    """Closed-form multi-class Brier score for one forecast."""
    return sum_of_squares - 2.0 * p_true + 1.0


def reciprocal_rank(rank: int) -> float:
    if rank < 1:
        raise ScoringError(f"Rank must be >= 1, got {rank}")
    return 1.0 / rank


def log_score(p_true: float, epsilon: float = 1e-15) -> float:
    """log(p_true), clamped to avoid log(0)."""
    return math.log(max(epsilon, p_true))


def brier_skill_score(model_brier: float, baseline_brier: float) -> float:
    """
    Compute Brier skill score relative to baseline.

    Skill = 1 - (Brier_model / Brier_baseline)

    Positive = better than baseline
    Zero = same as baseline
    Negative = worse than baseline
    """
    if baseline_brier == 0:
        return 0.0 if model_brier == 0 else float('-inf')

    return 1.0 - (model_brier / baseline_brier)


@dataclass(frozen=True)
class BacktestSummary:
    """Aggregate metrics over all evaluated steps."""
    total_tests: int
    top_k_rates: Dict[int, float]
    mrr: float
    mean_brier: float
    mean_log_score: float
    uniform_brier: float = UNIFORM_BRIER
    brier_skill_score: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_tests": self.total_tests,
            "top_k_rates": {str(k): round(v, 6) for k, v in sorted(self.top_k_rates.items())},
            "mrr": round(self.mrr, 6),
            "mean_brier": round(self.mean_brier, 6),
            "mean_log_score": round(self.mean_log_score, 6),
            "uniform_brier": round(self.uniform_brier, 6),
            "brier_skill_score": round(self.brier_skill_score, 6),
        }


def summarize_steps(steps: Sequence, top_ks: Optional[Iterable[int]] = None) -> BacktestSummary:
    """
    Aggregate backtest steps into summary metrics.

    Args:
        steps: BacktestStep records (p_true, rank, brier, in_top_k)
        top_ks: K values to report (defaults to the keys of the first step)

    Returns:
        BacktestSummary

    Raises:
        ScoringError: If there are no steps
    """
    if not steps:
        raise ScoringError("No backtest steps to summarize")

    if top_ks is None:
        top_ks = steps[0].in_top_k.keys()
    top_ks = sorted(top_ks)

    n = len(steps)
    hits = {k: 0 for k in top_ks}
    rr_sum = 0.0
    brier_sum = 0.0
    log_sum = 0.0

    for step in steps:
        for k in top_ks:
            if step.rank <= k:
                hits[k] += 1
        rr_sum += reciprocal_rank(step.rank)
        brier_sum += step.brier
        log_sum += log_score(step.p_true)

    mean_brier = brier_sum / n
    return BacktestSummary(
        total_tests=n,
        top_k_rates={k: hits[k] / n for k in top_ks},
        mrr=rr_sum / n,
        mean_brier=mean_brier,
        mean_log_score=log_sum / n,
        uniform_brier=UNIFORM_BRIER,
        brier_skill_score=brier_skill_score(mean_brier, UNIFORM_BRIER),
    )
