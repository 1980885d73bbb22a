"""
Observation records and boundary validation.

An observation is a single dated draw of a 3-digit value. Values keep
their leading zeros ("007" and "7" are not interchangeable); anything
that is not exactly three ASCII digits is rejected here, before it can
reach a counter.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List

TRIPLET_PATTERN = re.compile(r"^[0-9]{3}$")


class InvalidObservation(ValueError):
    """Raised when a value is not a zero-padded 3-digit string."""
    pass


def validate_triplet(value: str) -> str:
    """
    Check that value is exactly three ASCII digits.

    Args:
        value: Candidate triplet string

    Returns:
        The value unchanged

    Raises:
        InvalidObservation: If value is not a string matching ^[0-9]{3}$
    """
    if not isinstance(value, str) or not TRIPLET_PATTERN.match(value):
        raise InvalidObservation(f"Invalid triplet value: {value!r}")
    return value


@dataclass(frozen=True)
class Observation:
    """A dated 3-digit draw."""
    date: date
    value: str

    def __post_init__(self):
        validate_triplet(self.value)
        if not isinstance(self.date, date):
            raise InvalidObservation(f"Observation date must be a date, got {self.date!r}")


def sort_observations(observations: Iterable[Observation]) -> List[Observation]:
    """Return observations in chronological order (stable for equal dates)."""
    return sorted(observations, key=lambda o: o.date)
