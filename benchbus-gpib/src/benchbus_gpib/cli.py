"""Command-line interface for benchbus.

Usage:
    # List the instruments of a bench
    benchbus --config bench.yaml list

    # Initialize an instrument and run one command
    benchbus --config bench.yaml run dmm measurement_mode mode=AC_VOLTAGE
    benchbus --config bench.yaml run dmm get_nplc

    # Initialize an instrument and print readings for ten seconds
    benchbus --config bench.yaml watch dmm --seconds 10
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Any, Sequence

import yaml

from benchbus_core.errors import BenchbusError
from benchbus_gpib.command import coerce_arguments
from benchbus_gpib.config import BenchConfig, load_config
from benchbus_gpib.loader import load_driver
from benchbus_gpib.reading import Reading

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_assignments(items: Sequence[str]) -> dict[str, Any]:
    """Parse ``key=value`` items; values are read as YAML scalars.

    Raises:
        ValueError: If an item has no ``=``.
    """
    arguments: dict[str, Any] = {}
    for item in items:
        key, sep, text = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {item!r}")
        arguments[key] = yaml.safe_load(text) if text else None
    return arguments


def _create(config: BenchConfig, name: str) -> Any:
    inst_config = config.get_instrument(name)
    factory = load_driver(inst_config.driver)
    return factory(**inst_config.factory_kwargs())


def _format_reading(reading: Reading) -> str:
    flag = f" [{reading.message}]" if reading.message else ""
    return f"{reading.quantity}: {reading.value:g} {reading.unit.symbol}{flag}"


def cmd_list(args: argparse.Namespace) -> int:
    """List the configured instruments."""
    config = load_config(args.config)
    print(f"Bench: {config.bench_id}")
    if config.description:
        print(f"  {config.description}")
    for instrument in config.instruments:
        print(f"  {instrument.name}: {instrument.driver} @ {instrument.resource}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Initialize an instrument and execute one opcode."""
    config = load_config(args.config)
    instrument = _create(config, args.instrument)
    with instrument:
        handler = instrument.engine.driver.commands.lookup(args.opcode)
        arguments = coerce_arguments(handler, parse_assignments(args.arguments))
        result = instrument.execute(args.opcode, **arguments)
        instrument.flush(5.0)
        if result is not None:
            print(result)
        print(f"Settings: {instrument.settings}")
        print(f"Status: {instrument.status}")
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    """Initialize an instrument and print readings as they arrive."""
    config = load_config(args.config)
    instrument = _create(config, args.instrument)
    instrument.add_reading_listener(lambda reading: print(_format_reading(reading)))
    instrument.add_status_listener(lambda status: logger.info("Status: %s", status))
    with instrument:
        time.sleep(args.seconds)
        instrument.flush(5.0)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``benchbus`` console script."""
    parser = argparse.ArgumentParser(
        prog="benchbus",
        description="Bus-serialized GPIB instrument control",
    )
    parser.add_argument("--config", "-c", required=True, help="Bench YAML file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List configured instruments")
    list_parser.set_defaults(func=cmd_list)

    run_parser = subparsers.add_parser("run", help="Run one command on an instrument")
    run_parser.add_argument("instrument", help="Instrument name")
    run_parser.add_argument("opcode", help="Opcode to execute")
    run_parser.add_argument("arguments", nargs="*", help="Arguments as key=value")
    run_parser.set_defaults(func=cmd_run)

    watch_parser = subparsers.add_parser("watch", help="Print readings from an instrument")
    watch_parser.add_argument("instrument", help="Instrument name")
    watch_parser.add_argument(
        "--seconds", type=float, default=10.0, help="How long to watch (default: 10)"
    )
    watch_parser.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        result: int = args.func(args)
    except (BenchbusError, FileNotFoundError, KeyError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
