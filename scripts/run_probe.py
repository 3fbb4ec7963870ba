"""
Conflict probe runner for ATOP.

Loads a flight record feed file and runs the conflict probe over it, either
once or repeatedly on the scheduler interval.

Usage:
    python scripts/run_probe.py data/sample_feed.json --now 2026-01-01T00:00:00Z
    python scripts/run_probe.py feed.json --watch --cycles 3 --json
"""

import argparse
import json
import logging
import sys
import threading
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from atop_probe.config import load_config
from atop_probe.engine import ConflictEngine
from atop_probe.feed import load_records
from atop_probe.flight_record import parse_time
from atop_probe.flight_store import utc_now
from atop_probe.messages import BulkReplace, Start, RequestProbe


def print_results(results, as_json=False):
    """Print one probe cycle."""
    if as_json:
        print(json.dumps(results.to_message(), indent=2))
        return

    print("=" * 80)
    print(f"PROBE CYCLE @ {results.generated_at:%Y-%m-%d %H:%M:%SZ}")
    print("=" * 80)
    print(f"  Actual:   {results.actual_count}")
    print(f"  Imminent: {results.imminent_count}")
    print(f"  Advisory: {results.advisory_count}")
    print()

    if len(results):
        print(results.to_dataframe().to_string(index=False))
        print()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the ATOP conflict probe over a feed file")
    parser.add_argument("feed", help="JSON feed file (list of records or FDRs envelope)")
    parser.add_argument("--config", default=None, help="Probe config JSON (default data/probe_config.json)")
    parser.add_argument("--now", default=None, help="Evaluation instant, ISO 8601 (default: wall clock)")
    parser.add_argument("--watch", action="store_true", help="Keep probing on the scheduler interval")
    parser.add_argument("--cycles", type=int, default=3, help="Cycles to run with --watch (default 3)")
    parser.add_argument("--json", action="store_true", help="Print the outbound results message as JSON")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s"
    )

    config = load_config(args.config)

    if args.now is not None:
        fixed_now = parse_time(args.now)
        if fixed_now is None:
            print(f"Invalid --now value: {args.now}")
            return 1
        clock = lambda: fixed_now
    else:
        clock = utc_now

    records = load_records(args.feed)
    engine = ConflictEngine(config=config, clock=clock)
    engine.handle(BulkReplace(records))

    if not args.watch:
        print_results(engine.handle(RequestProbe()), as_json=args.json)
        return 0

    done = threading.Event()
    cycles = []

    def on_results(results):
        print_results(results, as_json=args.json)
        cycles.append(results)
        if len(cycles) >= args.cycles:
            done.set()

    engine.subscribe(on_results)
    engine.start_worker()
    engine.post(Start())
    engine.post(RequestProbe())

    try:
        done.wait()
    except KeyboardInterrupt:
        print("Interrupted")
    finally:
        engine.shutdown()

    return 0


if __name__ == "__main__":
    sys.exit(main())
