"""
Grouping functions: map a draw date to a chain of counter keys.

A chain is ordered finest first. The backtester and the prediction
calendar use the first key whose counter has observations and fall
back to the overall counter when none do.

Weekday numbering is Sunday = 0 ... Saturday = 6, matching the column
order of the weekly calendars.
"""

from datetime import date
from typing import Callable, Dict, Hashable, List, Union

GroupingFn = Callable[[date], Union[Hashable, List[Hashable]]]


class GroupingError(Exception):
    """Raised when a grouping mode is unknown."""
    pass


def weekday_index(d: date) -> int:
    """Sunday = 0 ... Saturday = 6."""
    return d.isoweekday() % 7


def weekly(d: date) -> List[str]:
    return [f"weekday:{weekday_index(d)}"]


def monthly(d: date) -> List[str]:
    """Exact month-day first, then the whole month."""
    return [f"month_day:{d.month}-{d.day}", f"month:{d.month}"]


def overall(d: date) -> List[str]:
    return []


GROUPINGS: Dict[str, GroupingFn] = {
    "weekly": weekly,
    "monthly": monthly,
    "overall": overall,
}


def get_grouping(mode: str) -> GroupingFn:
    """
    Resolve a grouping mode name.

    Raises:
        GroupingError: If mode is not registered
    """
    try:
        return GROUPINGS[mode]
    except KeyError:
        raise GroupingError(
            f"Unknown grouping mode: {mode} (expected one of {sorted(GROUPINGS)})"
        )


def composite_key(key: Hashable) -> str:
    """Render one grouping key; tuples become a single "a-b" key."""
    if isinstance(key, tuple):
        return "-".join(str(part) for part in key)
    return str(key)


def key_chain(grouping: GroupingFn, d: date) -> List[str]:
    """
    Normalize a grouping result to a list of string keys.

    Only a list is a fallback chain (finest first). Any other result,
    including a tuple such as (month, day), is one composite key.
    """
    keys = grouping(d)
    if keys is None:
        return []
    if not isinstance(keys, list):
        keys = [keys]
    return [composite_key(k) for k in keys]
