"""
Flight data records for the ATOP conflict probe.

Defines the canonical internal record schema (FlightRecord and Waypoint)
and the one place where feeder payloads are normalized into it. Feeders
send camelCase (`routeWaypoints`), PascalCase (`RouteWaypoints`) or
snake_case keys, state names with or without a `STATE_` prefix, and ETOs
as ISO 8601 strings or epoch milliseconds. Everything downstream of
`FlightRecord.from_dict` sees only the canonical form.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


DEFAULT_REGION = "pacific"
MIN_ROUTE_POINTS = 2  # Fewer points than this cannot form a leg


class InvalidFlightRecordError(ValueError):
    """Raised when a feeder payload cannot be turned into a FlightRecord."""


class FlightState(Enum):
    """Lifecycle state of a flight data record."""
    PREACTIVE = "PREACTIVE"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    FINISHED = "FINISHED"

    @classmethod
    def parse(cls, value: Any) -> "FlightState":
        """
        Parse a feeder state value such as "STATE_ACTIVE" or "active".

        A missing state means the feeder does not track lifecycle and maps
        to ACTIVE. Unrecognized states map to INACTIVE so the record is held
        in the store but never probed.
        """
        if isinstance(value, FlightState):
            return value
        if value is None or str(value).strip() == "":
            return cls.ACTIVE

        name = str(value).strip().upper()
        if name.startswith("STATE_"):
            name = name[len("STATE_"):]

        try:
            return cls(name)
        except ValueError:
            return cls.INACTIVE


@dataclass(frozen=True)
class Waypoint:
    """
    A route point.

    Attributes:
        name: Fix or waypoint name
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        eto: Estimated time over the point (UTC), None if unknown
    """
    name: str
    lat: float
    lon: float
    eto: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'eto', as_utc(self.eto))

    @property
    def position(self) -> Tuple[float, float]:
        """(lat, lon) tuple for the navigation helpers."""
        return (self.lat, self.lon)


@dataclass(frozen=True)
class FlightRecord:
    """
    Canonical flight data record (FDR).

    Records are immutable; the store replaces them wholesale on update.

    Attributes:
        callsign: Unique aircraft identifier
        state: Lifecycle state
        cfl: Cleared flight level (hundreds of feet), None if not assigned
        rfl: Requested flight level (hundreds of feet), None if not filed
        route: Parsed route waypoints in flight order
        route_string: Free-text filed route
        atd: Actual/estimated departure time (UTC)
        ground_speed: Ground speed in knots
        mach: Cruise Mach number
        rvsm_approved: RVSM approval; assumed approved unless stated otherwise
        rnp4: RNP4 navigation approval
        rnp10: RNP10 navigation approval
        has_datalink: ADS-C/CPDLC equipped
        has_dme: DME equipped
        is_jet: Turbojet (eligible for Mach Number Technique)
        region: Oceanic region, e.g. "pacific" or "northatlantic"; None if unknown
        updated_at: When the store last wrote this record
    """
    callsign: str
    state: FlightState = FlightState.ACTIVE
    cfl: Optional[float] = None
    rfl: Optional[float] = None
    route: Tuple[Waypoint, ...] = ()
    route_string: str = ""
    atd: Optional[datetime] = None
    ground_speed: Optional[float] = None
    mach: Optional[float] = None
    rvsm_approved: bool = True
    rnp4: bool = False
    rnp10: bool = False
    has_datalink: bool = False
    has_dme: bool = False
    is_jet: bool = False
    region: Optional[str] = None
    dep_airport: str = ""
    des_airport: str = ""
    aircraft_type: str = ""
    updated_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        # Naive times are read as UTC so every comparison in the probe is aware
        object.__setattr__(self, 'route', tuple(self.route))
        object.__setattr__(self, 'atd', as_utc(self.atd))
        object.__setattr__(self, 'updated_at', as_utc(self.updated_at))

    @property
    def flight_level(self) -> float:
        """Cleared level, else requested level, else 0."""
        return self.cfl or self.rfl or 0

    @property
    def is_eligible(self) -> bool:
        """True if the record takes part in conflict probing."""
        return self.state is FlightState.ACTIVE and len(self.route) >= MIN_ROUTE_POINTS

    @property
    def is_rnp(self) -> bool:
        return self.rnp4 or self.rnp10

    def __repr__(self) -> str:
        """String representation of the record."""
        return (
            f"FlightRecord(callsign='{self.callsign}', state={self.state.value}, "
            f"FL{self.flight_level:.0f}, {len(self.route)} waypoints)"
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlightRecord":
        """
        Build a FlightRecord from a feeder payload.

        Args:
            data: Mapping with feeder keys in any of the supported casings

        Returns:
            Normalized FlightRecord

        Raises:
            InvalidFlightRecordError: If the callsign is missing or a
                waypoint has unusable coordinates

        Example:
            >>> record = FlightRecord.from_dict({
            ...     "Callsign": "QFA1", "State": "STATE_ACTIVE", "CFL": 350,
            ...     "RouteWaypoints": [{"name": "A", "lat": 0, "lon": 0},
            ...                        {"name": "B", "lat": 0, "lon": 10}],
            ... })
            >>> record.is_eligible
            True
        """
        if not isinstance(data, dict):
            raise InvalidFlightRecordError(f"Flight record must be a mapping, got {type(data).__name__}")

        fields = _normalize_keys(data)

        callsign = fields.get("callsign")
        if callsign is None or str(callsign).strip() == "":
            raise InvalidFlightRecordError("Flight record is missing a callsign")

        return cls(
            callsign=str(callsign).strip(),
            state=FlightState.parse(fields.get("state")),
            cfl=_parse_level(fields.get("cfl")),
            rfl=_parse_level(fields.get("rfl")),
            route=parse_route(fields.get("route_waypoints")),
            route_string=str(fields.get("route") or ""),
            atd=parse_time(fields.get("atd")),
            ground_speed=_parse_float(fields.get("ground_speed")),
            mach=_parse_float(fields.get("mach")),
            rvsm_approved=parse_flag(fields.get("rvsm_approved"), default=True),
            rnp4=parse_flag(fields.get("rnp4")),
            rnp10=parse_flag(fields.get("rnp10")),
            has_datalink=parse_flag(fields.get("has_datalink")),
            has_dme=parse_flag(fields.get("has_dme")),
            is_jet=parse_flag(fields.get("is_jet")),
            region=_parse_region(fields.get("region")),
            dep_airport=str(fields.get("dep_airport") or ""),
            des_airport=str(fields.get("des_airport") or ""),
            aircraft_type=str(fields.get("aircraft_type") or ""),
        )


# Feeder key (lowercased, underscores removed) -> canonical field name
_FIELD_ALIASES = {
    "callsign": "callsign",
    "state": "state",
    "cfl": "cfl",
    "rfl": "rfl",
    "route": "route",
    "routewaypoints": "route_waypoints",
    "waypoints": "route_waypoints",
    "atd": "atd",
    "departuretime": "atd",
    "groundspeed": "ground_speed",
    "mach": "mach",
    "rvsmapproved": "rvsm_approved",
    "rvsm": "rvsm_approved",
    "rnp4": "rnp4",
    "rnp10": "rnp10",
    "hasdatalink": "has_datalink",
    "datalink": "has_datalink",
    "hasdme": "has_dme",
    "dme": "has_dme",
    "isjet": "is_jet",
    "jet": "is_jet",
    "region": "region",
    "depairport": "dep_airport",
    "desairport": "des_airport",
    "aircrafttype": "aircraft_type",
}

_WAYPOINT_ALIASES = {
    "name": "name",
    "lat": "lat",
    "latitude": "lat",
    "lon": "lon",
    "lng": "lon",
    "longitude": "lon",
    "eto": "eto",
    "eta": "eto",
}

_TRUE_STRINGS = ("1", "true", "yes", "y")
_FALSE_STRINGS = ("0", "false", "no", "n")


def _normalize_keys(data: Dict[str, Any], aliases: Dict[str, str] = _FIELD_ALIASES) -> Dict[str, Any]:
    """Map feeder keys onto canonical names, dropping unknown keys."""
    normalized = {}
    for key, value in data.items():
        canonical = aliases.get(str(key).replace("_", "").lower())
        if canonical is not None:
            normalized[canonical] = value
    return normalized


def parse_flag(value: Any, default: bool = False) -> bool:
    """
    Parse an equipage flag.

    Missing or unrecognized values fall back to `default`.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)

    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return default


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Timezone-aware UTC copy of `moment`; naive datetimes are read as UTC."""
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def isoformat_utc(moment: datetime) -> str:
    """ISO 8601 UTC string with a "Z" suffix, as sent on the wire."""
    return as_utc(moment).isoformat().replace("+00:00", "Z")


def parse_time(value: Any) -> Optional[datetime]:
    """
    Parse a feeder timestamp into a timezone-aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (a trailing "Z" or a missing offset
    are read as UTC) and epoch milliseconds. Returns None for missing or
    unparseable values, including epoch values outside the datetime range.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return as_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def parse_route(waypoints: Optional[Iterable[Any]]) -> Tuple[Waypoint, ...]:
    """
    Parse feeder waypoints into a tuple of Waypoints.

    Raises:
        InvalidFlightRecordError: If the waypoints are not a list, or a
            waypoint lacks coordinates or they are out of range
    """
    if waypoints is None or waypoints == "":
        return ()
    if not isinstance(waypoints, (list, tuple)):
        raise InvalidFlightRecordError(f"Route waypoints must be a list, got {type(waypoints).__name__}")

    route = []
    for index, raw in enumerate(waypoints):
        if isinstance(raw, Waypoint):
            route.append(raw)
            continue

        fields = _normalize_keys(raw, _WAYPOINT_ALIASES) if isinstance(raw, dict) else {}
        lat = _parse_float(fields.get("lat"))
        lon = _parse_float(fields.get("lon"))

        if lat is None or lon is None:
            raise InvalidFlightRecordError(f"Waypoint {index} has no usable coordinates: {raw!r}")
        if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
            raise InvalidFlightRecordError(f"Waypoint {index} out of range: ({lat}, {lon})")

        route.append(Waypoint(
            name=str(fields.get("name") or f"WP{index}"),
            lat=lat,
            lon=lon,
            eto=parse_time(fields.get("eto"))
        ))

    return tuple(route)


def _parse_float(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_level(value: Any) -> Optional[float]:
    """Parse a flight level such as 350, "350" or "F350"."""
    if isinstance(value, str):
        value = value.strip().upper().lstrip("FL")
    return _parse_float(value)


def _parse_region(value: Any) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return None
    return str(value).strip().lower().replace(" ", "").replace("_", "")
