"""Command-line interface for the tradeguard runtime."""

from __future__ import annotations

import argparse
import sys

from tradeguard.config import Settings
from tradeguard.runtime import rebalance_now, run, show_portfolio


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description="Risk-managed spot crypto trading bot")
    parser.add_argument("--mode", choices=["paper", "live"], help="Runtime mode")
    parser.add_argument("--once", action="store_true", help="Run a single trade cycle, then exit")
    parser.add_argument("--max-ticks", type=int, help="Stop after this many trade cycles")
    parser.add_argument("--interval-seconds", type=int, help="Seconds between trade cycles")
    parser.add_argument("--state-db", type=str, help="SQLite ledger database path")
    parser.add_argument("--events-dir", type=str, help="Run outputs directory")
    parser.add_argument(
        "--portfolio",
        action="store_true",
        help="List ledger holdings valued at current prices, then exit",
    )
    parser.add_argument(
        "--rebalance",
        action="store_true",
        help="Trim overweight positions once, then exit",
    )
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply CLI values onto environment-derived settings."""
    if args.portfolio and args.rebalance:
        raise ValueError("Use only one action flag: --portfolio or --rebalance")
    if args.once and args.max_ticks is not None:
        raise ValueError("--once and --max-ticks cannot be combined")

    overrides: dict[str, object] = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.once:
        overrides["max_ticks"] = 1
    if args.max_ticks is not None:
        overrides["max_ticks"] = args.max_ticks
    if args.interval_seconds is not None:
        overrides["interval_seconds"] = args.interval_seconds
    if args.state_db:
        overrides["state_db_path"] = args.state_db
    if args.events_dir:
        overrides["events_dir"] = args.events_dir
    return settings.with_overrides(**overrides)


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_cli_overrides(Settings.from_env(), args)
    except ValueError as exc:
        print(f"Configuration error: {exc}")
        return 2
    if args.portfolio:
        return show_portfolio(settings)
    if args.rebalance:
        return rebalance_now(settings)
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
