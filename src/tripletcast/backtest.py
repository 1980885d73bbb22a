"""
Expanding-window backtest with no-lookahead guarantees.

Walks a chronologically sorted observation sequence. The first
min_train observations only train the counters (warm-up). Every later
observation is scored against a distribution built from counters that
hold strictly earlier observations, and only then folded in.

Critical constraints:
- No lookahead: evidence for step i is exactly the fold of observations 0..i-1
- Observe-after-evaluate: a record is never scored against its own outcome
- Evidence fallback: first non-empty counter of the grouping chain, else overall
- Fewer than min_train + 1 observations is InsufficientData, not an error
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .config import EngineConfig
from .counter import Counter, CounterGroups
from .distribution import build_distribution
from .grouping import GroupingFn, get_grouping, key_chain
from .observations import Observation, sort_observations
from .scorer import BacktestSummary, multiclass_brier, summarize_steps

logger = logging.getLogger(__name__)


class BacktestCancelled(Exception):
    """Raised when a cancellation check stops a running backtest."""
    pass


@dataclass(frozen=True)
class BacktestStep:
    """One evaluated observation."""
    date: date
    true_value: str
    p_true: float
    rank: int
    brier: float
    in_top_k: Mapping[int, bool]
    observations_used: int
    evidence_key: str

    def to_record(self) -> Dict[str, object]:
        """Flat dict for tabular export."""
        record = {
            "date": self.date.isoformat(),
            "true_value": self.true_value,
            "p_true": self.p_true,
            "rank": self.rank,
            "brier": self.brier,
            "observations_used": self.observations_used,
            "evidence_key": self.evidence_key,
        }
        for k in sorted(self.in_top_k):
            record[f"in_top_{k}"] = self.in_top_k[k]
        return record


@dataclass(frozen=True)
class InsufficientData:
    """Returned instead of a result when there is nothing to evaluate."""
    observations: int
    min_train: int

    @property
    def reason(self) -> str:
        return (
            f"Not enough records for backtest: {self.observations} observation(s), "
            f"min_train={self.min_train}"
        )


@dataclass
class BacktestResult:
    """Summary, per-step records and the final counter state."""
    summary: BacktestSummary
    steps: List[BacktestStep]
    groups: CounterGroups = field(repr=False)

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "steps": [s.to_record() for s in self.steps],
        }


def evaluate_step(
    observation: Observation,
    counter: Counter,
    config: EngineConfig,
    evidence_key: str = "overall"
) -> BacktestStep:
    """
    Score one observation against the distribution built from counter.

    The counter is read, never modified.
    """
    dist = build_distribution(counter, config)
    p_true = dist[observation.value]
    rank = dist.rank_of(observation.value)

    return BacktestStep(
        date=observation.date,
        true_value=observation.value,
        p_true=p_true,
        rank=rank,
        brier=multiclass_brier(dist.sum_of_squares, p_true),
        in_top_k={k: rank <= k for k in config.top_ks},
        observations_used=dist.observations_used,
        evidence_key=evidence_key,
    )


def _coerce(observations: Iterable) -> List[Observation]:
    result = []
    for o in observations:
        if not isinstance(o, Observation):
            o = Observation(*o)
        result.append(o)
    return result


class Backtester:
    """
    Expanding-window evaluator over one observation sequence.

    The counter state is owned by a CounterGroups that can be supplied by
    the caller and is returned in the result, so the state after any step
    can be inspected.
    """

    def __init__(
        self,
        observations: Iterable,
        grouping: Union[str, GroupingFn] = "overall",
        config: Optional[EngineConfig] = None,
        groups: Optional[CounterGroups] = None
    ):
        self.observations = sort_observations(_coerce(observations))
        self.grouping = get_grouping(grouping) if isinstance(grouping, str) else grouping
        self.config = config or EngineConfig()
        self.groups = groups if groups is not None else CounterGroups()

    @property
    def sufficient(self) -> bool:
        return len(self.observations) > self.config.min_train

    def _fold(self, observation: Observation, chain: List[str]) -> None:
        self.groups.fold_in(observation.value, chain)

    def iter_steps(self) -> Iterator[BacktestStep]:
        """
        Warm up, then yield one BacktestStep per evaluated observation.

        Yields control after every step; stopping iteration leaves the
        counters holding exactly the observations evaluated so far.
        """
        min_train = self.config.min_train

        for i, obs in enumerate(self.observations):
            chain = key_chain(self.grouping, obs.date)

            if i < min_train:
                self._fold(obs, chain)
                continue

            evidence_key, counter = self.groups.select(chain)
            if chain and evidence_key != chain[0]:
                logger.debug(f"{obs.date}: no evidence for {chain[0]}, using {evidence_key}")

            step = evaluate_step(obs, counter, self.config, evidence_key)
            self._fold(obs, chain)
            yield step

    def run(
        self,
        cancel_check: Optional[Callable[[], bool]] = None
    ) -> Union[BacktestResult, InsufficientData]:
        """
        Run the full backtest.

        Args:
            cancel_check: Called after each evaluated step is recorded;
                returning True stops the run with BacktestCancelled

        Returns:
            BacktestResult, or InsufficientData if N <= min_train
        """
        if not self.sufficient:
            insufficient = InsufficientData(len(self.observations), self.config.min_train)
            logger.warning(insufficient.reason)
            return insufficient

        steps: List[BacktestStep] = []
        for step in self.iter_steps():
            steps.append(step)
            if cancel_check is not None and cancel_check():
                raise BacktestCancelled(f"Backtest cancelled after {len(steps)} step(s)")

        summary = summarize_steps(steps, self.config.top_ks)
        logger.info(
            f"Backtest complete: {summary.total_tests} test(s), "
            f"MRR={summary.mrr:.6f}, mean Brier={summary.mean_brier:.6f}"
        )
        return BacktestResult(summary=summary, steps=steps, groups=self.groups)


def run_backtest(
    observations: Iterable,
    grouping: Union[str, GroupingFn] = "overall",
    config: Optional[EngineConfig] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
    groups: Optional[CounterGroups] = None
) -> Union[BacktestResult, InsufficientData]:
    """
    Expanding-window backtest of the mixed distribution.

    Args:
        observations: Observation records (any order; sorted by date here)
        grouping: Mode name ("weekly", "monthly", "overall") or a
            function date -> key or key chain
        config: Engine settings
        cancel_check: Optional cooperative cancellation callback
        groups: Existing counter state to continue from

    Returns:
        BacktestResult, or InsufficientData when there is nothing to evaluate
    """
    return Backtester(observations, grouping, config, groups).run(cancel_check)
