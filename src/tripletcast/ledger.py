"""
JSONL storage: append-only observation files and per-run step exports.

Observation rows look like {"date": "2024-03-01", "value": "042"}.
Values must already be zero-padded 3-digit strings; extracting them
from spreadsheet cells is the job of whatever produced the file.
"""

import fcntl
import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .observations import Observation


class LedgerError(Exception):
    """Raised when ledger operations fail."""
    pass


def append_record(file_path: Path, record: Dict[str, Any]) -> None:
    """
    Atomically append a record to a JSONL file.

    Uses file locking to ensure safe concurrent writes.

    Args:
        file_path: Path to JSONL file
        record: Record dictionary to append

    Raises:
        LedgerError: If append fails
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        # Serialize first to catch JSON errors before touching file
        line = json.dumps(record, ensure_ascii=False, sort_keys=True) + "\n"

        with open(file_path, 'a') as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    except (IOError, OSError) as e:
        raise LedgerError(f"Failed to append record: {e}")
    except (TypeError, ValueError) as e:
        raise LedgerError(f"Failed to serialize record: {e}")


def read_records(
    file_path: Path,
    filter_fn: Optional[Callable[[Dict[str, Any]], bool]] = None
) -> List[Dict[str, Any]]:
    """
    Read all records from a JSONL file, optionally filtered.

    Args:
        file_path: Path to JSONL file
        filter_fn: Optional predicate function to filter records

    Returns:
        List of matching record dictionaries

    Raises:
        LedgerError: If read fails
    """
    if not file_path.exists():
        return []

    records = []
    try:
        with open(file_path, 'r') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                    if filter_fn is None or filter_fn(record):
                        records.append(record)
                except json.JSONDecodeError as e:
                    raise LedgerError(f"Invalid JSON on line {line_num}: {e}")
    except IOError as e:
        raise LedgerError(f"Failed to read ledger: {e}")

    return records


def observation_from_record(record: Dict[str, Any]) -> Observation:
    """
    Build a validated Observation from a ledger row.

    Raises:
        LedgerError: If date or value is missing or malformed
    """
    raw_date = record.get("date")
    value = record.get("value")
    if raw_date is None or value is None:
        raise LedgerError(f"Observation record missing date or value: {record}")

    try:
        return Observation(date=date.fromisoformat(str(raw_date)), value=value)
    except ValueError as e:
        raise LedgerError(f"Invalid observation record {record}: {e}")


def load_observations(file_path: Path) -> List[Observation]:
    """
    Load observations from a JSONL file.

    Args:
        file_path: Path to observations JSONL

    Returns:
        Observations in file order

    Raises:
        LedgerError: If the file is missing or any row is invalid
    """
    if not file_path.exists():
        raise LedgerError(f"Observations file not found: {file_path}")
    return [observation_from_record(r) for r in read_records(file_path)]


def append_observation(observation: Observation, file_path: Path) -> None:
    append_record(file_path, {
        "date": observation.date.isoformat(),
        "value": observation.value,
    })


def write_steps(file_path: Path, steps: Iterable) -> int:
    """
    Write one backtest run's step records to a JSONL file.

    The file is replaced, so it only ever holds the steps of a single run.

    Returns:
        Number of records written

    Raises:
        LedgerError: If the file can't be written or a record can't be serialized
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        lines = [json.dumps(step.to_record(), ensure_ascii=False, sort_keys=True) + "\n"
                 for step in steps]
        with open(file_path, 'w') as f:
            f.writelines(lines)
    except (IOError, OSError) as e:
        raise LedgerError(f"Failed to write steps: {e}")
    except (TypeError, ValueError) as e:
        raise LedgerError(f"Failed to serialize step record: {e}")

    return len(lines)
