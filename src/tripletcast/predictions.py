"""
Forward prediction calendar.

Folds a full history into grouped counters, then ranks candidates for
each requested future date using the same evidence fallback as the
backtester (first non-empty key of the grouping chain, else overall).

group_tables() adds the per-group frequency tables that accompany a
calendar: positional digit counts and observed triplet counts.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Union

from .config import EngineConfig
from .counter import OVERALL_KEY, Counter, CounterGroups
from .grouping import GroupingFn, get_grouping, key_chain
from .observations import Observation
from .ranker import RankedCandidate, rank_candidates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatePrediction:
    """Ranked candidates for one future date."""
    date: date
    source_key: str
    observations_used: int
    candidates: List[RankedCandidate]

    def to_record(self) -> Dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "source_key": self.source_key,
            "observations_used": self.observations_used,
            "candidates": [
                {"triplet": c.triplet, "score": c.score, "count": c.count}
                for c in self.candidates
            ],
        }


def _resolve(grouping: Union[str, GroupingFn]) -> GroupingFn:
    return get_grouping(grouping) if isinstance(grouping, str) else grouping


def build_groups(
    observations: Iterable[Observation],
    grouping: Union[str, GroupingFn] = "overall"
) -> CounterGroups:
    """Fold every observation into the overall counter and its key chain."""
    fn = _resolve(grouping)
    groups = CounterGroups()
    for obs in observations:
        groups.fold_in(obs.value, key_chain(fn, obs.date))
    logger.info(f"Built counters from {groups.overall.total} observation(s), {len(groups.keys())} group(s)")
    return groups


def next_n_dates(n: int, start: Optional[date] = None) -> List[date]:
    """n consecutive dates beginning the day after start (default today)."""
    if start is None:
        start = date.today()
    return [start + timedelta(days=i) for i in range(1, n + 1)]


def predict_dates(
    groups: CounterGroups,
    dates: Iterable[date],
    grouping: Union[str, GroupingFn] = "overall",
    config: Optional[EngineConfig] = None,
    strategy: Optional[str] = None
) -> List[DatePrediction]:
    """
    Rank candidates for each date.

    Args:
        groups: Trained counters
        dates: Target dates
        grouping: Same grouping used to build groups
        config: Engine settings
        strategy: Ranking strategy override

    Returns:
        One DatePrediction per date, in input order
    """
    fn = _resolve(grouping)
    config = config or EngineConfig()

    predictions = []
    for d in dates:
        source_key, counter = groups.select(key_chain(fn, d))
        predictions.append(DatePrediction(
            date=d,
            source_key=source_key,
            observations_used=counter.total,
            candidates=rank_candidates(counter, config, strategy),
        ))
    return predictions


def positional_table(counter: Counter) -> List[Dict[str, object]]:
    """
    Per-digit counts and unsmoothed probabilities for each position.

    Returns:
        Ten rows, one per digit, with count_pos{p} and prob_pos{p} columns
    """
    snap = counter.snapshot()
    freqs = snap.position_frequencies()
    rows = []
    for d in range(10):
        row: Dict[str, object] = {"digit": str(d)}
        for p in range(3):
            row[f"count_pos{p}"] = snap.position_counts[p][d]
            row[f"prob_pos{p}"] = freqs[p][d]
        rows.append(row)
    return rows


def triplet_table(counter: Counter) -> List[Dict[str, object]]:
    """
    Observed triplets with counts and unsmoothed probabilities.

    Returns:
        One row per observed triplet, count descending, ties by ascending triplet
    """
    snap = counter.snapshot()
    items = sorted(snap.triplet_counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        {
            "triplet": triplet,
            "count": c,
            "probability": c / snap.total if snap.total else 0.0,
        }
        for triplet, c in items
    ]


def group_tables(groups: CounterGroups) -> Dict[str, Dict[str, object]]:
    """
    Positional and triplet tables for the overall counter and every group.

    Returns:
        Mapping of key ("overall" first, then group keys sorted) to
        {"total", "positional", "triplets"}
    """
    tables = {}
    for key in [OVERALL_KEY] + groups.keys():
        counter = groups.get(key)
        tables[key] = {
            "total": counter.total,
            "positional": positional_table(counter),
            "triplets": triplet_table(counter),
        }
    return tables
