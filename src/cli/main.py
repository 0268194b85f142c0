"""
Main CLI Module for the Fib-Wave Engine

Provides a command-line interface for replaying historical bars through
the engine and inspecting what it produced.

Commands:
- replay: Load a CSV, run the engine bar by bar, print a summary and
  optionally dump events and a resumable checkpoint as JSON
"""

import argparse
import json
import sys
import logging
from collections import Counter
from decimal import Decimal, InvalidOperation

from src.data.ohlc_loader import load_bars
from src.fibwave.engine import FibWaveEngine
from src.fibwave.engine_config import EngineConfig
from src.fibwave.errors import BarOrderError
from src.logging.progress_logger import ProgressLogger

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_config(args) -> EngineConfig:
    """Map CLI flags onto EngineConfig, keeping defaults for unset flags."""
    overrides = {}
    if args.pivot_length is not None:
        overrides['pivot_length'] = args.pivot_length
    if args.min_range is not None:
        overrides['min_anchor_range'] = args.min_range
    return EngineConfig.default().with_overrides(**overrides)


def run_replay_command(args) -> bool:
    """Replay a CSV file through the engine."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT
    )
    logger = logging.getLogger(__name__)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}")
        return False

    try:
        bars = load_bars(args.data)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        logger.error(f"Could not load {args.data}: {e}")
        print(f"Error: {e}")
        return False

    print(f"Loaded {len(bars)} bars from {args.data}")

    engine = FibWaveEngine(config)
    progress = ProgressLogger(interval_bars=args.progress_interval)
    all_events = []
    all_draws = []
    conditions = Counter()
    pivots = 0
    last_result = None

    try:
        for bar in bars:
            result = engine.process_bar(bar)
            last_result = result
            if result.pivot is not None:
                pivots += 1
            for event in result.events:
                progress.on_event(event)
            conditions.update(c.value for c in result.conditions)
            all_events.extend(result.events)
            all_draws.extend(result.draw_events)
            progress.check_progress(bar.index + 1, len(bars), bar.timestamp)
    except BarOrderError as e:
        logger.error(f"Replay aborted: {e}")
        print(f"Error: {e}")
        return False

    manager = engine.manager
    print("\nReplay summary")
    print(f"  Bars processed:        {len(bars)}")
    print(f"  Pivots confirmed:      {pivots}")
    print(f"  Scenarios activated:   {manager.activated_count}")
    print(f"  Scenarios invalidated: {manager.invalidated_count}")
    print(f"  Draw events:           {len(all_draws)}")
    if conditions:
        for name, count in sorted(conditions.items()):
            print(f"  Condition {name}: {count}")

    active = engine.active_scenario
    if active is not None:
        print(f"  Active scenario:       {active.scenario_id} "
              f"(wave {active.wave_state.wave_label})")
    else:
        print("  Active scenario:       none")

    if last_result is not None:
        fired = [s.name for s in last_result.signals if s.value]
        print(f"  Final signals:         {', '.join(fired) if fired else 'none'}")

    if args.events_out:
        payload = {
            'events': [e.to_dict() for e in all_events],
            'draw_events': [d.to_dict() for d in all_draws],
        }
        with open(args.events_out, 'w') as f:
            json.dump(payload, f, indent=2)
        print(f"Events written to {args.events_out}")

    if args.checkpoint_out:
        with open(args.checkpoint_out, 'w') as f:
            json.dump(engine.get_state().to_dict(), f, indent=2)
        print(f"Checkpoint written to {args.checkpoint_out}")

    return True


def _decimal_arg(value: str) -> Decimal:
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if not number.is_finite():
        raise argparse.ArgumentTypeError(f"not a finite number: {value!r}")
    return number


def create_parser():
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="Fib-Wave Engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    replay_parser = subparsers.add_parser(
        'replay',
        help='Replay a CSV file through the engine'
    )
    replay_parser.add_argument(
        '--data',
        required=True,
        help='Path to OHLC CSV (TradingView or semicolon historical format)'
    )
    replay_parser.add_argument(
        '--pivot-length',
        type=int,
        help='Bars on each side of a pivot (default: 5)'
    )
    replay_parser.add_argument(
        '--min-range',
        type=_decimal_arg,
        help='Minimum anchor range for scenario activation (default: 0.01)'
    )
    replay_parser.add_argument(
        '--progress-interval',
        type=int,
        default=1000,
        help='Bars between progress reports (default: 1000)'
    )
    replay_parser.add_argument(
        '--events-out',
        help='Write lifecycle and draw events to this JSON file'
    )
    replay_parser.add_argument(
        '--checkpoint-out',
        help='Write the final engine state to this JSON file'
    )
    replay_parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    argv = sys.argv[1:] if argv is None else argv

    # If no command specified, show help
    if not argv:
        parser.print_help()
        return

    args = parser.parse_args(argv)

    if args.command == 'replay':
        success = run_replay_command(args)
        sys.exit(0 if success else 1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
