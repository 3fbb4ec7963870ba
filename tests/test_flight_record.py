"""
Test suite for ATOP flight data records.

Tests normalization of feeder payloads into FlightRecords: key casing,
state names, equipage flags, timestamps, and malformed input.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from atop_probe.flight_record import (
    FlightRecord,
    FlightState,
    InvalidFlightRecordError,
    Waypoint,
    parse_flag,
    parse_route,
    parse_time
)


T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

PASCAL_CASE_FDR = {
    "Callsign": "QFA1",
    "State": "STATE_ACTIVE",
    "CFL": 350,
    "RFL": 370,
    "Route": "ALPHA BRAVO",
    "RouteWaypoints": [
        {"Name": "ALPHA", "Lat": -33.9, "Lon": 151.2, "ETO": "2026-01-01T00:00:00Z"},
        {"Name": "BRAVO", "Lat": -30.0, "Lon": 160.0, "ETO": "2026-01-01T01:00:00Z"},
    ],
    "ATD": "2025-12-31T23:30:00Z",
    "AircraftType": "A388",
    "DepAirport": "YSSY",
    "DesAirport": "KLAX",
}


class TestFromDict:

    def test_pascal_case_payload(self):
        record = FlightRecord.from_dict(PASCAL_CASE_FDR)

        assert record.callsign == "QFA1"
        assert record.state is FlightState.ACTIVE
        assert record.cfl == 350
        assert record.rfl == 370
        assert record.flight_level == 350
        assert record.route_string == "ALPHA BRAVO"
        assert record.aircraft_type == "A388"
        assert record.dep_airport == "YSSY"
        assert record.des_airport == "KLAX"
        assert record.atd == datetime(2025, 12, 31, 23, 30, tzinfo=timezone.utc)

        assert len(record.route) == 2
        assert record.route[0] == Waypoint("ALPHA", -33.9, 151.2, T0)
        assert record.route[1].eto == datetime(2026, 1, 1, 1, tzinfo=timezone.utc)
        assert record.is_eligible

    def test_camel_and_snake_case_agree(self):
        camel = FlightRecord.from_dict({
            "callsign": "ANZ7",
            "cfl": 310,
            "routeWaypoints": [{"lat": 0, "lon": 0}, {"lat": 1, "lon": 1}],
            "hasDatalink": True,
            "isJet": True,
        })
        snake = FlightRecord.from_dict({
            "callsign": "ANZ7",
            "cfl": 310,
            "route_waypoints": [{"lat": 0, "lon": 0}, {"lat": 1, "lon": 1}],
            "has_datalink": True,
            "is_jet": True,
        })

        assert camel == snake
        assert camel.has_datalink and camel.is_jet

    def test_unknown_keys_ignored(self):
        record = FlightRecord.from_dict({"callsign": "X1", "squawk": "7500", "colour": "red"})
        assert record.callsign == "X1"

    def test_level_strings(self):
        record = FlightRecord.from_dict({"callsign": "X1", "cfl": "F350", "rfl": "FL390"})
        assert record.cfl == 350
        assert record.rfl == 390

    def test_missing_levels(self):
        record = FlightRecord.from_dict({"callsign": "X1"})
        assert record.cfl is None
        assert record.rfl is None
        assert record.flight_level == 0

    def test_requested_level_fallback(self):
        record = FlightRecord.from_dict({"callsign": "X1", "rfl": 370})
        assert record.flight_level == 370

    def test_rvsm_assumed_unless_denied(self):
        assert FlightRecord.from_dict({"callsign": "X1"}).rvsm_approved
        assert FlightRecord.from_dict({"callsign": "X1", "rvsm": "yes"}).rvsm_approved
        assert not FlightRecord.from_dict({"callsign": "X1", "rvsmApproved": False}).rvsm_approved

    def test_other_flags_default_false(self):
        record = FlightRecord.from_dict({"callsign": "X1"})
        assert not (record.rnp4 or record.rnp10 or record.has_datalink or record.has_dme or record.is_jet)
        assert not record.is_rnp

    def test_region_normalized(self):
        assert FlightRecord.from_dict({"callsign": "X1", "region": "North Atlantic"}).region == "northatlantic"
        assert FlightRecord.from_dict({"callsign": "X1", "region": "north_atlantic"}).region == "northatlantic"
        assert FlightRecord.from_dict({"callsign": "X1"}).region is None

    def test_missing_callsign(self):
        with pytest.raises(InvalidFlightRecordError):
            FlightRecord.from_dict({"cfl": 350})
        with pytest.raises(InvalidFlightRecordError):
            FlightRecord.from_dict({"callsign": "  "})

    def test_not_a_mapping(self):
        with pytest.raises(InvalidFlightRecordError):
            FlightRecord.from_dict(["QFA1"])

    def test_bad_waypoint(self):
        with pytest.raises(InvalidFlightRecordError):
            FlightRecord.from_dict({"callsign": "X1", "routeWaypoints": [{"lat": 0}]})

    def test_single_waypoint_not_eligible(self):
        record = FlightRecord.from_dict({"callsign": "X1", "routeWaypoints": [{"lat": 0, "lon": 0}]})
        assert len(record.route) == 1
        assert not record.is_eligible


class TestFlightState:

    @pytest.mark.parametrize("value,expected", [
        ("STATE_ACTIVE", FlightState.ACTIVE),
        ("ACTIVE", FlightState.ACTIVE),
        ("active", FlightState.ACTIVE),
        ("STATE_PREACTIVE", FlightState.PREACTIVE),
        ("STATE_INACTIVE", FlightState.INACTIVE),
        ("FINISHED", FlightState.FINISHED),
        (None, FlightState.ACTIVE),
        ("", FlightState.ACTIVE),
        ("STATE_HOLDING", FlightState.INACTIVE),
        (FlightState.FINISHED, FlightState.FINISHED),
    ])
    def test_parse(self, value, expected):
        assert FlightState.parse(value) is expected

    def test_only_active_is_eligible(self):
        route = (Waypoint("A", 0, 0), Waypoint("B", 0, 1))
        for state in FlightState:
            record = FlightRecord(callsign="X1", state=state, route=route)
            assert record.is_eligible == (state is FlightState.ACTIVE)


class TestParsers:

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (False, False),
        (1, True),
        (0, False),
        ("true", True),
        ("Y", True),
        ("no", False),
        ("0", False),
    ])
    def test_parse_flag(self, value, expected):
        assert parse_flag(value) is expected

    def test_parse_flag_default(self):
        assert parse_flag(None) is False
        assert parse_flag(None, default=True) is True
        assert parse_flag("maybe", default=True) is True

    def test_parse_time_formats(self):
        assert parse_time("2026-01-01T00:00:00Z") == T0
        assert parse_time("2026-01-01T00:00:00") == T0
        assert parse_time("2026-01-01T10:00:00+10:00") == T0
        assert parse_time(1767225600000) == T0
        assert parse_time(T0) == T0

    def test_parse_time_is_utc(self):
        assert parse_time("2026-01-01T10:00:00+10:00").tzinfo == timezone.utc

    def test_parse_time_missing_or_invalid(self):
        assert parse_time(None) is None
        assert parse_time("") is None
        assert parse_time("not a time") is None

    def test_parse_time_out_of_range_epoch(self):
        assert parse_time(1e20) is None
        assert parse_time(-1e20) is None
        assert parse_time(float("nan")) is None

    def test_naive_datetimes_read_as_utc(self):
        waypoint = Waypoint("A", 0, 0, datetime(2026, 1, 1))
        record = FlightRecord(callsign="X1", atd=datetime(2025, 12, 31, 23), route=[waypoint])

        assert waypoint.eto == T0
        assert record.atd == datetime(2025, 12, 31, 23, tzinfo=timezone.utc)
        assert record.route == (waypoint,)

    def test_parse_route_aliases(self):
        route = parse_route([
            {"name": "A", "latitude": 10, "longitude": 20, "eta": "2026-01-01T00:00:00Z"},
            {"lat": "11", "lng": "21"},
        ])

        assert route[0] == Waypoint("A", 10.0, 20.0, T0)
        assert route[1] == Waypoint("WP1", 11.0, 21.0, None)

    def test_parse_route_out_of_range(self):
        with pytest.raises(InvalidFlightRecordError):
            parse_route([{"lat": 91, "lon": 0}])
        with pytest.raises(InvalidFlightRecordError):
            parse_route([{"lat": 0, "lon": -181}])

    def test_parse_route_empty(self):
        assert parse_route(None) == ()
        assert parse_route([]) == ()

    def test_parse_route_not_a_list(self):
        with pytest.raises(InvalidFlightRecordError):
            parse_route(5)
        with pytest.raises(InvalidFlightRecordError):
            FlightRecord.from_dict({"callsign": "X1", "routeWaypoints": 5})
