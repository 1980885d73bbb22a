"""
Command-line interface for tripletcast.

Provides subcommands for backtesting the smoothed triplet model,
producing a forward prediction calendar, ranking candidates over the
whole history, and validating the engine configuration.
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from . import backtest
from . import config as config_module
from . import grouping
from . import ledger
from . import predictions
from . import ranker
from .logging_config import configure_logging


def _emit(payload: Dict[str, Any], output: Optional[str]) -> None:
    if output:
        with open(output, 'w') as f:
            json.dump(payload, f, indent=2)
        print(f"Results written to {output}")
    else:
        print(json.dumps(payload, indent=2))


def _mode_config(args: argparse.Namespace) -> config_module.EngineConfig:
    doc = config_module.load_engine_config(Path(args.config))
    return config_module.get_mode_config(args.mode, doc)


def cmd_backtest(args: argparse.Namespace) -> int:
    """Run an expanding-window backtest."""
    try:
        cfg = _mode_config(args)
        observations = ledger.load_observations(Path(args.observations))
        result = backtest.run_backtest(observations, args.mode, cfg)

        if isinstance(result, backtest.InsufficientData):
            print(f"Insufficient data: {result.reason}")
            return 0

        summary = result.summary
        print(f"Tests:       {summary.total_tests}")
        for k, rate in sorted(summary.top_k_rates.items()):
            print(f"Top-{k:<3} rate: {rate:.4f}")
        print(f"MRR:         {summary.mrr:.6f}")
        print(f"Mean Brier:  {summary.mean_brier:.6f}")

        if args.steps_out:
            n = ledger.write_steps(Path(args.steps_out), result.steps)
            print(f"Wrote {n} step record(s) to {args.steps_out}")

        if args.output:
            _emit({"mode": args.mode, "config": cfg.to_dict(), **result.to_dict()}, args.output)

        return 0

    except (config_module.ConfigError, ledger.LedgerError, grouping.GroupingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_predict(args: argparse.Namespace) -> int:
    """Rank candidates for upcoming dates."""
    try:
        start = date.fromisoformat(args.start) if args.start else None
    except ValueError as e:
        print(f"Error: invalid --start date: {e}", file=sys.stderr)
        return 1

    try:
        cfg = _mode_config(args)
        observations = ledger.load_observations(Path(args.observations))
        groups = predictions.build_groups(observations, args.mode)

        dates = predictions.next_n_dates(args.days, start)
        preds = predictions.predict_dates(groups, dates, args.mode, cfg, args.strategy)

        if args.verbose:
            for p in preds:
                top = " | ".join(c.label() for c in p.candidates[:5])
                print(f"  {p.date} [{p.source_key}, n={p.observations_used}]: {top}")

        _emit({
            "mode": args.mode,
            "strategy": args.strategy or cfg.ranking_strategy,
            "predictions": [p.to_record() for p in preds],
            "tables": predictions.group_tables(groups),
        }, args.output)
        return 0

    except (config_module.ConfigError, ledger.LedgerError,
            grouping.GroupingError, ranker.RankingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_rank(args: argparse.Namespace) -> int:
    """Rank candidates over the full history."""
    try:
        cfg = _mode_config(args)
        observations = ledger.load_observations(Path(args.observations))
        groups = predictions.build_groups(observations, "overall")
        candidates = ranker.rank_candidates(groups.overall, cfg, args.strategy)

        print(f"Observations: {groups.overall.total}")
        print(f"{'Rank':<6} {'Triplet':<8} {'Score':<12} {'Count':<6}")
        print("-" * 34)
        for i, c in enumerate(candidates, 1):
            print(f"{i:<6} {c.triplet:<8} {c.score:<12.6f} {c.count:<6}")
        return 0

    except (config_module.ConfigError, ledger.LedgerError, ranker.RankingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_validate_config(args: argparse.Namespace) -> int:
    """Validate engine configuration."""
    path = Path(args.config)
    if not path.exists():
        print(f"Config not found: {path}", file=sys.stderr)
        return 1
    try:
        doc = config_module.load_engine_config(path)
        print(f"Config valid: {path}")
        print(f"  Version: {doc.get('config_version')}")
        for mode in sorted(doc.get("overrides", {})):
            cfg = config_module.get_mode_config(mode, doc)
            print(f"  {mode}: mix={cfg.mix} alpha_triplet={cfg.alpha_triplet} alpha_pos={cfg.alpha_pos}")
        return 0

    except config_module.ConfigError as e:
        print(f"Validation failed: {e}", file=sys.stderr)
        return 1


def main(argv: Optional[list] = None) -> int:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="tripletcast",
        description="Smoothed 3-digit draw distributions and expanding-window backtests"
    )

    # Global options
    parser.add_argument(
        "--config",
        default=str(config_module.DEFAULT_CONFIG_PATH),
        help="Path to engine config"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    modes = sorted(grouping.GROUPINGS)
    strategies = list(config_module.VALID_RANKING_STRATEGIES)

    # backtest command
    bt_parser = subparsers.add_parser("backtest", help="Run expanding-window backtest")
    bt_parser.add_argument("--observations", required=True, help="Observations JSONL")
    bt_parser.add_argument("--mode", choices=modes, default="weekly", help="Grouping mode")
    bt_parser.add_argument("--output", "-o", help="Output file (JSON)")
    bt_parser.add_argument("--steps-out", help="Write per-step records to this JSONL file")
    bt_parser.set_defaults(func=cmd_backtest)

    # predict command
    pred_parser = subparsers.add_parser("predict", help="Rank candidates for upcoming dates")
    pred_parser.add_argument("--observations", required=True, help="Observations JSONL")
    pred_parser.add_argument("--mode", choices=modes, default="weekly", help="Grouping mode")
    pred_parser.add_argument("--days", type=int, default=365, help="Number of days to predict")
    pred_parser.add_argument("--start", help="Predict from the day after this date (YYYY-MM-DD)")
    pred_parser.add_argument("--strategy", choices=strategies, help="Ranking strategy")
    pred_parser.add_argument("--output", "-o", help="Output file (JSON)")
    pred_parser.set_defaults(func=cmd_predict)

    # rank command
    rank_parser = subparsers.add_parser("rank", help="Rank candidates over the full history")
    rank_parser.add_argument("--observations", required=True, help="Observations JSONL")
    rank_parser.add_argument("--mode", choices=modes, default="overall",
                             help="Config overrides to apply")
    rank_parser.add_argument("--strategy", choices=strategies, help="Ranking strategy")
    rank_parser.set_defaults(func=cmd_rank)

    # validate-config command
    validate_parser = subparsers.add_parser("validate-config", help="Validate engine config")
    validate_parser.set_defaults(func=cmd_validate_config)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
