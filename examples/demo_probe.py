"""
Demo conflict probe over a handful of oceanic flights.

Builds a crossing pair, a reciprocal pair, and a vertically separated
flight, then runs one probe cycle and prints the grouped results.
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from atop_probe.engine import ConflictEngine
from atop_probe.flight_record import FlightRecord
from atop_probe.flight_store import utc_now
from atop_probe.messages import BulkReplace, RequestProbe


def make_record(callsign, level, points, now, **equipage):
    """Build a feeder payload; points are (name, lat, lon, minutes from now)."""
    return FlightRecord.from_dict({
        'callsign': callsign,
        'state': 'STATE_ACTIVE',
        'cfl': level,
        'routeWaypoints': [
            {'name': name, 'lat': lat, 'lon': lon,
             'eto': (now + timedelta(minutes=minutes)).isoformat()}
            for name, lat, lon, minutes in points
        ],
        **equipage
    })


def main():
    """Run a single probe cycle over demo traffic."""
    print("=" * 70)
    print("ATOP Conflict Probe - Demo")
    print("=" * 70)
    print()

    now = utc_now()

    records = [
        # Eastbound and northbound RNP4 jets crossing at (0, 1)
        make_record("ANZ101", 350, [("ALPHA", 0.0, 0.0, 0), ("BRAVO", 0.0, 2.0, 20)], now,
                    rnp4=True, isJet=True),
        make_record("QFA202", 350, [("CHARLIE", -1.0, 1.0, 20), ("DELTA", 1.0, 1.0, 40)], now,
                    rnp4=True, isJet=True),
        # Reciprocal pair on the same short track
        make_record("UAL303", 370, [("ECHO", 10.0, 0.0, 5), ("FOXTROT", 10.0, 0.5, 15)], now),
        make_record("JAL404", 370, [("FOXTROT", 10.0, 0.5, 5), ("ECHO", 10.0, 0.0, 15)], now),
        # Same track as ANZ101 but 4000ft above
        make_record("SIA505", 390, [("ALPHA", 0.0, 0.0, 0), ("BRAVO", 0.0, 2.0, 20)], now),
    ]

    engine = ConflictEngine()
    engine.handle(BulkReplace(tuple(records)))
    print(f"Engine: {engine}")
    print()

    results = engine.handle(RequestProbe())
    print(f"Results: {results}")
    print()

    for conflict in results:
        print(f"  {conflict.status.value:9s} {conflict.intruder_callsign}/{conflict.active_callsign} "
              f"{conflict.conflict_type.value:10s} "
              f"LOS {conflict.earliest_los:%H:%M}-{conflict.latest_los:%H:%M}Z "
              f"lat={conflict.lateral_sep}nm vert={conflict.vertical_act:.0f}/{conflict.vertical_sep}ft")
    print()

    stats = results.get_statistics()
    print("Statistics:")
    for key, value in stats.items():
        print(f"  {key}: {value}")
    print()


if __name__ == "__main__":
    main()
