"""
Separation standards for the ATOP conflict probe.

Pure lookup functions returning the vertical, lateral, and longitudinal
minima that apply to a pair of flight records, plus the track-angle
classification that the longitudinal time minimum depends on.

Each rule table is evaluated top-to-bottom and returns on the first match;
the order of the checks is part of the standard.
"""

from datetime import timedelta
from enum import Enum

from atop_probe.flight_record import FlightRecord, DEFAULT_REGION
from atop_probe.navigation import calculate_bearing


# Vertical minima (feet)
VERTICAL_SEP_ABOVE_FL600_FT = 5000
VERTICAL_SEP_ABOVE_FL450_FT = 4000
VERTICAL_SEP_RVSM_FT = 1000
VERTICAL_SEP_STANDARD_FT = 2000
RVSM_FLOOR_FL = 290
RVSM_CEILING_FL = 410

# Lateral minima (nautical miles)
LATERAL_SEP_RNP4_NM = 23
LATERAL_SEP_RNP10_NM = 50
LATERAL_SEP_MIXED_RNP_NM = 50
LATERAL_SEP_SINGLE_RNP_NM = 75
LATERAL_SEP_NORTH_ATLANTIC_NM = 60
LATERAL_SEP_DEFAULT_NM = 100
NORTH_ATLANTIC_REGION = "northatlantic"

# Longitudinal time minima
LONG_TIME_MNT = timedelta(minutes=5)
LONG_TIME_SAME = timedelta(minutes=15)
LONG_TIME_RECIPROCAL = timedelta(minutes=10)
LONG_TIME_CROSSING = timedelta(minutes=15)

# Longitudinal distance minima (nautical miles)
LONG_DIST_RNP4_NM = 30
LONG_DIST_DATALINK_RNP10_NM = 50
LONG_DIST_DME_NM = 20
LONG_DIST_DEFAULT_NM = 50

# Track-angle classification thresholds (degrees, both exclusive)
SAME_TRACK_MAX_ANGLE_DEG = 45.0
RECIPROCAL_MIN_ANGLE_DEG = 135.0
UNKNOWN_TRACK_ANGLE_DEG = 90.0  # Treated as crossing when a route is too short


class TrackType(str, Enum):
    """Relative direction of two tracks."""
    SAME = "Same"
    RECIPROCAL = "Reciprocal"
    CROSSING = "Crossing"


def altitude_difference(record1: FlightRecord, record2: FlightRecord) -> float:
    """
    Actual vertical separation between two records in feet.

    Uses each record's cleared level, falling back to its requested level.
    """
    return abs(record1.flight_level - record2.flight_level) * 100


def vertical_minimum(record1: FlightRecord, record2: FlightRecord) -> int:
    """
    Vertical separation minimum in feet.

    Decided on the higher of the two levels:

    - above FL600: 5000 ft
    - above FL450: 4000 ft
    - FL290 to FL410 with both aircraft RVSM approved: 1000 ft
    - otherwise: 2000 ft

    Example:
        >>> a = FlightRecord(callsign="A", cfl=350)
        >>> b = FlightRecord(callsign="B", cfl=360)
        >>> vertical_minimum(a, b)
        1000
    """
    max_level = max(record1.flight_level, record2.flight_level)

    if max_level > 600:
        return VERTICAL_SEP_ABOVE_FL600_FT

    if max_level > 450:
        return VERTICAL_SEP_ABOVE_FL450_FT

    if RVSM_FLOOR_FL <= max_level <= RVSM_CEILING_FL:
        if record1.rvsm_approved and record2.rvsm_approved:
            return VERTICAL_SEP_RVSM_FT

    return VERTICAL_SEP_STANDARD_FT


def lateral_minimum(record1: FlightRecord, record2: FlightRecord) -> int:
    """
    Lateral separation minimum in nautical miles.

    - both RNP4: 23 nm
    - both RNP10: 50 nm
    - one RNP4, the other RNP10: 50 nm
    - only one aircraft RNP equipped: 75 nm
    - neither: region default, 60 nm in the North Atlantic, 100 nm elsewhere

    The region comes from the first record, or the second if the first has
    none.
    """
    if record1.rnp4 and record2.rnp4:
        return LATERAL_SEP_RNP4_NM

    if record1.rnp10 and record2.rnp10:
        return LATERAL_SEP_RNP10_NM

    if (record1.rnp4 and record2.rnp10) or (record1.rnp10 and record2.rnp4):
        return LATERAL_SEP_MIXED_RNP_NM

    if record1.is_rnp != record2.is_rnp:
        return LATERAL_SEP_SINGLE_RNP_NM

    region = record1.region or record2.region or DEFAULT_REGION
    if region == NORTH_ATLANTIC_REGION:
        return LATERAL_SEP_NORTH_ATLANTIC_NM

    return LATERAL_SEP_DEFAULT_NM


def longitudinal_time_minimum(
    record1: FlightRecord,
    record2: FlightRecord,
    track_type: TrackType
) -> timedelta:
    """
    Longitudinal time separation minimum.

    Args:
        record1: First record
        record2: Second record
        track_type: Classification of the pair's tracks, computed once per
            pair by the caller

    Returns:
        5 min for same-direction jets (Mach Number Technique), 15 min for
        other same-direction traffic, 10 min reciprocal, 15 min crossing
    """
    if track_type is TrackType.SAME:
        if record1.is_jet and record2.is_jet:
            return LONG_TIME_MNT
        return LONG_TIME_SAME

    if track_type is TrackType.RECIPROCAL:
        return LONG_TIME_RECIPROCAL

    return LONG_TIME_CROSSING


def longitudinal_distance_minimum(record1: FlightRecord, record2: FlightRecord) -> int:
    """
    Longitudinal distance separation minimum in nautical miles.

    - both RNP4: 30 nm
    - both datalink equipped and both RNP10: 50 nm
    - both DME equipped: 20 nm
    - otherwise: 50 nm
    """
    if record1.rnp4 and record2.rnp4:
        return LONG_DIST_RNP4_NM

    if record1.has_datalink and record2.has_datalink and record1.rnp10 and record2.rnp10:
        return LONG_DIST_DATALINK_RNP10_NM

    if record1.has_dme and record2.has_dme:
        return LONG_DIST_DME_NM

    return LONG_DIST_DEFAULT_NM


def coarse_track(record: FlightRecord) -> float:
    """Bearing from a record's first route point to its last."""
    first = record.route[0]
    last = record.route[-1]
    return calculate_bearing(first.lat, first.lon, last.lat, last.lon)


def calculate_track_angle(record1: FlightRecord, record2: FlightRecord) -> float:
    """
    Angle between the coarse tracks of two records, in [0, 180].

    Returns 90 (crossing) if either route has fewer than two points.
    """
    if len(record1.route) < 2 or len(record2.route) < 2:
        return UNKNOWN_TRACK_ANGLE_DEG

    angle = abs(coarse_track(record1) - coarse_track(record2))
    if angle > 180:
        angle = 360 - angle

    return angle


def classify_track_angle(
    track_angle: float,
    same_track_max_angle: float = SAME_TRACK_MAX_ANGLE_DEG,
    reciprocal_min_angle: float = RECIPROCAL_MIN_ANGLE_DEG
) -> TrackType:
    """
    Classify a track angle as Same, Reciprocal, or Crossing.

    The angle is folded into [0, 180] first. Same if strictly below
    `same_track_max_angle`, Reciprocal if strictly above
    `reciprocal_min_angle`, Crossing otherwise (boundaries included).

    Example:
        >>> classify_track_angle(44.9).value
        'Same'
        >>> classify_track_angle(45.0).value
        'Crossing'
        >>> classify_track_angle(135.1).value
        'Reciprocal'
    """
    normalized = abs(track_angle % 360)
    if normalized > 180:
        normalized = 360 - normalized

    if normalized < same_track_max_angle:
        return TrackType.SAME

    if normalized > reciprocal_min_angle:
        return TrackType.RECIPROCAL

    return TrackType.CROSSING
