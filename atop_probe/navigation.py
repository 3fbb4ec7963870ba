"""
Great-circle navigation utilities for the ATOP conflict probe.

Provides distance, bearing, and destination-point calculations on a
spherical earth, plus planar line-segment helpers used when testing route
legs against protected airspace polygons.

Positions passed to the planar helpers are (lat, lon) tuples in decimal
degrees. The planar approximation is only valid at separation-minima scale
(tens of nautical miles); it should not be used for trans-global legs, and
none of these helpers handle legs that cross the antimeridian or a pole.
"""

import numpy as np
from typing import Optional, Sequence, Tuple


# Constants
EARTH_RADIUS_NM = 3440.065  # Earth radius in nautical miles
PARALLEL_EPSILON = 1e-4     # Cross-product magnitude treated as parallel

LatLon = Tuple[float, float]


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great circle distance between two points using Haversine formula.

    Args:
        lat1: Latitude of first point in decimal degrees
        lon1: Longitude of first point in decimal degrees
        lat2: Latitude of second point in decimal degrees
        lon2: Longitude of second point in decimal degrees

    Returns:
        Distance in nautical miles

    Example:
        >>> # One degree of longitude along the equator
        >>> dist = haversine_distance(0.0, 0.0, 0.0, 1.0)
        >>> print(f"{dist:.1f} nm")
        60.0 nm
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(lat2 - lat1)
    dlon = np.radians(lon2 - lon1)

    a = np.sin(dlat / 2)**2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2)**2
    # Rounding can push a fractionally above 1 for near-antipodal points
    a = min(max(a, 0.0), 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return float(EARTH_RADIUS_NM * c)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate initial bearing (forward azimuth) from point 1 to point 2.

    Along a great circle the bearing changes as you travel; this is the
    bearing at the start point.

    Args:
        lat1: Latitude of starting point in decimal degrees
        lon1: Longitude of starting point in decimal degrees
        lat2: Latitude of destination point in decimal degrees
        lon2: Longitude of destination point in decimal degrees

    Returns:
        Initial bearing in degrees, in the range [0, 360)

    Example:
        >>> calculate_bearing(0.0, 0.0, 0.0, 10.0)
        90.0
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlon = np.radians(lon2 - lon1)

    x = np.sin(dlon) * np.cos(lat2_rad)
    y = np.cos(lat1_rad) * np.sin(lat2_rad) - np.sin(lat1_rad) * np.cos(lat2_rad) * np.cos(dlon)

    bearing_deg = (np.degrees(np.arctan2(x, y)) + 360) % 360

    # (x + 360) % 360 can round up to exactly 360.0 for tiny negative angles
    if bearing_deg >= 360.0:
        bearing_deg = 0.0

    return float(bearing_deg)


def destination_point(
    lat: float,
    lon: float,
    distance_nm: float,
    bearing_deg: float
) -> LatLon:
    """
    Calculate the point reached travelling a distance on an initial bearing.

    Uses the direct spherical solution.

    Args:
        lat: Starting latitude in decimal degrees
        lon: Starting longitude in decimal degrees
        distance_nm: Distance to travel in nautical miles
        bearing_deg: Initial bearing in degrees (any value, taken modulo 360)

    Returns:
        Tuple of (lat, lon) in decimal degrees, longitude in [-180, 180)

    Example:
        >>> # 60nm north from the equator
        >>> new_lat, new_lon = destination_point(0.0, 0.0, 60.0, 0.0)
        >>> print(f"({new_lat:.3f}, {new_lon:.3f})")
        (0.999, 0.000)
    """
    lat_rad = np.radians(lat)
    lon_rad = np.radians(lon)
    bearing_rad = np.radians(bearing_deg)

    angular_distance = distance_nm / EARTH_RADIUS_NM

    new_lat_rad = np.arcsin(
        np.sin(lat_rad) * np.cos(angular_distance) +
        np.cos(lat_rad) * np.sin(angular_distance) * np.cos(bearing_rad)
    )

    new_lon_rad = lon_rad + np.arctan2(
        np.sin(bearing_rad) * np.sin(angular_distance) * np.cos(lat_rad),
        np.cos(angular_distance) - np.sin(lat_rad) * np.sin(new_lat_rad)
    )

    new_lat = np.degrees(new_lat_rad)
    new_lon = ((np.degrees(new_lon_rad) + 180) % 360) - 180

    return float(new_lat), float(new_lon)


def segment_intersection(
    p1: LatLon,
    p2: LatLon,
    p3: LatLon,
    p4: LatLon
) -> Optional[LatLon]:
    """
    Find the intersection of segment p1-p2 with segment p3-p4.

    Treats latitude/longitude as planar coordinates and solves the two
    parametric line equations. Both parameters must fall in [0, 1] for
    the segments (not just the lines) to intersect.

    Args:
        p1, p2: Endpoints of the first segment as (lat, lon)
        p3, p4: Endpoints of the second segment as (lat, lon)

    Returns:
        Intersection point as (lat, lon), or None when the segments do not
        meet or are (nearly) parallel

    Example:
        >>> segment_intersection((0, 0), (2, 2), (0, 2), (2, 0))
        (1.0, 1.0)
    """
    lat1, lon1 = p1
    lat2, lon2 = p2
    lat3, lon3 = p3
    lat4, lon4 = p4

    denom = (lon4 - lon3) * (lat2 - lat1) - (lat4 - lat3) * (lon2 - lon1)
    if abs(denom) < PARALLEL_EPSILON:
        return None

    ua = ((lat4 - lat3) * (lon1 - lon3) - (lon4 - lon3) * (lat1 - lat3)) / denom
    ub = ((lat2 - lat1) * (lon1 - lon3) - (lon2 - lon1) * (lat1 - lat3)) / denom

    if 0.0 <= ua <= 1.0 and 0.0 <= ub <= 1.0:
        return (
            float(lat1 + ua * (lat2 - lat1)),
            float(lon1 + ua * (lon2 - lon1))
        )

    return None


def point_in_polygon(point: LatLon, polygon: Sequence[LatLon]) -> bool:
    """
    Ray-casting containment test in the lat/lon plane.

    Args:
        point: (lat, lon) to test
        polygon: Vertices as (lat, lon); may or may not repeat the first vertex

    Returns:
        True if the point lies inside the polygon
    """
    lat, lon = point
    inside = False
    count = len(polygon)

    for i in range(count):
        lat_i, lon_i = polygon[i]
        lat_j, lon_j = polygon[i - 1]

        if (lat_i > lat) != (lat_j > lat):
            crossing_lon = lon_i + (lat - lat_i) * (lon_j - lon_i) / (lat_j - lat_i)
            if lon < crossing_lon:
                inside = not inside

    return inside
