"""
Sufficient-statistics accumulator for 3-digit draws.

A Counter holds the total number of folded values, per-position digit
counts and exact triplet counts. Counters only grow: there is no
decrement or eviction.

CounterGroups is the owned collection of one overall counter plus one
counter per grouping key (weekday, month, month-day, ...).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .observations import validate_triplet

N_POSITIONS = 3
N_DIGITS = 10


@dataclass(frozen=True)
class CounterSnapshot:
    """Read-only view of a Counter at a point in time."""
    total: int
    position_counts: Tuple[Tuple[int, ...], ...]
    triplet_counts: Mapping[str, int]

    def position_frequencies(self) -> Tuple[Tuple[float, ...], ...]:
        """Unsmoothed per-position digit frequencies (zeros when empty)."""
        if self.total == 0:
            return tuple((0.0,) * N_DIGITS for _ in range(N_POSITIONS))
        return tuple(
            tuple(c / self.total for c in row)
            for row in self.position_counts
        )


class Counter:
    """
    Mutable accumulator over a multiset of triplet values.

    Values are assumed to be validated upstream. Pass strict=True to
    re-validate every folded value.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._total = 0
        self._position_counts: List[List[int]] = [
            [0] * N_DIGITS for _ in range(N_POSITIONS)
        ]
        self._triplet_counts: Dict[str, int] = {}

    @property
    def total(self) -> int:
        return self._total

    def fold_in(self, value: str, times: int = 1) -> None:
        """
        Add one value (times occurrences) to the counts.

        Args:
            value: 3-digit string
            times: Number of occurrences to add
        """
        if self.strict:
            validate_triplet(value)
        self._total += times
        for position in range(N_POSITIONS):
            self._position_counts[position][int(value[position])] += times
        self._triplet_counts[value] = self._triplet_counts.get(value, 0) + times

    def fold_all(self, values: Iterable[str]) -> None:
        for value in values:
            self.fold_in(value)

    def count(self, value: str) -> int:
        return self._triplet_counts.get(value, 0)

    def snapshot(self) -> CounterSnapshot:
        """Copy the current counts into an immutable snapshot."""
        return CounterSnapshot(
            total=self._total,
            position_counts=tuple(tuple(row) for row in self._position_counts),
            triplet_counts=MappingProxyType(dict(self._triplet_counts)),
        )

    def merge(self, other: "Counter") -> "Counter":
        """Return a new Counter holding the sum of self and other."""
        merged = Counter(strict=self.strict or other.strict)
        for source in (self, other):
            for value, c in source._triplet_counts.items():
                merged.fold_in(value, c)
        return merged

    def __add__(self, other: "Counter") -> "Counter":
        if not isinstance(other, Counter):
            return NotImplemented
        return self.merge(other)

    def __repr__(self) -> str:
        return f"Counter(total={self._total}, distinct={len(self._triplet_counts)})"


def merge_counters(counters: Iterable[Counter]) -> Counter:
    """Sum any number of counters into a fresh one."""
    merged = Counter()
    for c in counters:
        merged = merged.merge(c)
    return merged


OVERALL_KEY = "overall"


class CounterGroups:
    """
    One overall Counter plus a Counter per grouping key.

    Counters are created lazily on first fold and are owned by this
    collection; callers only ever see snapshots or the live object
    returned by get().
    """

    def __init__(self):
        self.overall = Counter()
        self._groups: Dict[str, Counter] = {}

    def fold_in(self, value: str, keys: Iterable[str]) -> None:
        """Fold a value into the overall counter and every key in the chain."""
        self.overall.fold_in(value)
        for key in keys:
            counter = self._groups.get(key)
            if counter is None:
                counter = Counter()
                self._groups[key] = counter
            counter.fold_in(value)

    def get(self, key: str) -> Optional[Counter]:
        if key == OVERALL_KEY:
            return self.overall
        return self._groups.get(key)

    def select(self, keys: Iterable[str]) -> Tuple[str, Counter]:
        """
        Pick the first non-empty counter in the chain, else overall.

        Returns:
            Tuple of (key used, counter)
        """
        for key in keys:
            counter = self._groups.get(key)
            if counter is not None and counter.total > 0:
                return key, counter
        return OVERALL_KEY, self.overall

    def keys(self) -> List[str]:
        return sorted(self._groups)

    def snapshot(self) -> Dict[str, CounterSnapshot]:
        """Snapshot every counter, overall included."""
        result = {OVERALL_KEY: self.overall.snapshot()}
        for key in sorted(self._groups):
            result[key] = self._groups[key].snapshot()
        return result
