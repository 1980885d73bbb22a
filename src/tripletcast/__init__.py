"""
tripletcast - Smoothed triplet distributions and expanding-window backtests.

Estimates a probability distribution over the 1000 possible 3-digit
draws from a dated history and measures how that estimate would have
performed historically.

Modules:
    observations - Observation records and boundary validation
    counter - Sufficient-statistics counters and grouped counter state
    distribution - Laplace-smoothed triplet / positional mixture
    ranker - Top-N candidate ranking (exact and approximate strategies)
    grouping - Date -> counter key chains (weekly, monthly, overall)
    scorer - Multi-class Brier, reciprocal rank, log and skill scores
    backtest - Expanding-window backtester (no lookahead)
    predictions - Forward prediction calendar
    ledger - JSONL storage for observations and step records
    config - Engine configuration loading and validation
    logging_config - Shared logging setup for CLI entry points
    cli - Command-line interface entrypoints
"""

from . import observations
from . import counter
from . import config
from . import distribution
from . import ranker
from . import grouping
from . import scorer
from . import backtest
from . import predictions
from . import ledger
from . import cli

from .backtest import BacktestResult, BacktestStep, InsufficientData, run_backtest
from .config import EngineConfig
from .counter import Counter, CounterGroups
from .distribution import Distribution, build_distribution
from .observations import InvalidObservation, Observation
from .ranker import RankedCandidate, rank_candidates

__version__ = "1.0.0"
