"""
proactive-signals CLI - run the signal engine against an exported snapshot.

Usage:
    proactive-signals                         Run as daemon (Ctrl+C to stop)
    proactive-signals --once                  Run one cycle and exit
    proactive-signals --snapshot data.json    Read host data from data.json
    proactive-signals --config engine.yaml    Load settings from YAML
    proactive-signals --console               Also log to the console

Exit codes:
    0 - success (or a --once cycle that produced no notification)
    2 - invalid configuration
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from proactive_signals import __version__
from proactive_signals.config import EngineConfig, load_config
from proactive_signals.notify_channels import build_default_sink
from proactive_signals.rules import default_rules
from proactive_signals.scheduler import SignalEngine
from proactive_signals.snapshot import JsonFileSnapshotSource
from proactive_signals.suppression import JsonFlagStore, SuppressionStore

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_SIZE = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

logger = logging.getLogger("proactive.cli")


def setup_logging(log_dir: Path, console: bool = False, verbose: bool = False) -> logging.Logger:
    root = logging.getLogger("proactive")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_dir / "proactive.log", maxBytes=MAX_LOG_SIZE, backupCount=LOG_BACKUP_COUNT
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console_handler)
    return root


def build_engine(config: EngineConfig, console: bool = True) -> SignalEngine:
    """Wire an engine from config: file snapshot, JSON flags, default sink."""
    tz = config.tzinfo
    return SignalEngine(
        source=JsonFileSnapshotSource(config.snapshot_file),
        sink=build_default_sink(console=console),
        rules=default_rules(tz, config),
        store=SuppressionStore(JsonFlagStore(config.state_file)),
        interval=config.interval_seconds,
        tz=tz,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proactive-signals",
        description="Proactive Signal Engine - goal deadline and vitals nudges",
    )
    parser.add_argument("--version", action="version", version=f"proactive-signals {__version__}")
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--snapshot", type=Path, help="JSON file with lifeItems / biometricData")
    parser.add_argument("--state-file", type=Path, help="JSON file for calendar-day throttle flags")
    parser.add_argument("--interval", type=float, help="Seconds between cycles")
    parser.add_argument("--timezone", help="IANA timezone for day boundaries")
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit")
    parser.add_argument("--console", action="store_true", help="Also log to the console")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def _resolve_config(args: argparse.Namespace) -> EngineConfig:
    config = load_config(args.config)
    overrides = {
        "snapshot_file": args.snapshot,
        "state_file": args.state_file,
        "interval_seconds": args.interval,
        "timezone": args.timezone,
    }
    values = dict(vars(config))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return EngineConfig(**values)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        config = _resolve_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_dir, console=args.console, verbose=args.verbose)
    engine = build_engine(config)

    if args.once:
        candidate = engine.run_cycle()
        if candidate is None:
            print("No notification this cycle.")
        return 0

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}")
        engine.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    engine.start()
    try:
        while not engine.wait(1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        engine.stop()
        logger.info(f"Engine stopped. Stats: {engine.stats}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
