"""
Protected airspace geometry for the ATOP conflict probe.

Builds the padded bounding boxes used as a cheap lateral pre-filter, the
capsule-shaped protected airspace polygon around each route leg, and the
conflict segments where another route's legs pass through that polygon.

Polygon/leg intersection is done in the lat/lon plane (see
`navigation.segment_intersection`). The error this introduces is bounded
at separation-minima scale but grows with leg length and latitude.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from atop_probe.flight_record import Waypoint
from atop_probe.navigation import (
    LatLon,
    calculate_bearing,
    destination_point,
    haversine_distance,
    point_in_polygon,
    segment_intersection
)


BOUNDING_BOX_PADDING_DEG = 0.5  # Roughly 30nm
CAP_STEP_DEG = 15               # Angular sampling of each semicircular end cap
DUPLICATE_POINT_NM = 0.01       # Intersections closer than this are the same point


@dataclass(frozen=True)
class BoundingBox:
    """Lat/lon rectangle enclosing a route, padded for separation minima."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def overlaps(self, other: "BoundingBox") -> bool:
        """True if the two rectangles share any area (edges count)."""
        return not (
            self.max_lon < other.min_lon or
            self.min_lon > other.max_lon or
            self.max_lat < other.min_lat or
            self.min_lat > other.max_lat
        )


@dataclass(frozen=True)
class ConflictSegment:
    """
    Portion of a route leg that lies inside another route's protected airspace.

    Attributes:
        start_point: Entry point (lat, lon)
        end_point: Exit point (lat, lon)
        start_time: Interpolated time at the entry point
        end_time: Interpolated time at the exit point
    """
    start_point: LatLon
    end_point: LatLon
    start_time: datetime
    end_time: datetime

    @property
    def duration(self) -> timedelta:
        """Time spent in conflict (always non-negative)."""
        return abs(self.end_time - self.start_time)

    @property
    def distance_nm(self) -> float:
        """Great-circle length of the segment."""
        return haversine_distance(
            self.start_point[0], self.start_point[1],
            self.end_point[0], self.end_point[1]
        )


def create_bounding_box(
    route: Sequence[Waypoint],
    padding_deg: float = BOUNDING_BOX_PADDING_DEG
) -> Optional[BoundingBox]:
    """
    Padded bounding box of a route.

    Returns:
        BoundingBox, or None for an empty route
    """
    if not route:
        return None

    lats = [wp.lat for wp in route]
    lons = [wp.lon for wp in route]

    return BoundingBox(
        min_lat=min(lats) - padding_deg,
        max_lat=max(lats) + padding_deg,
        min_lon=min(lons) - padding_deg,
        max_lon=max(lons) + padding_deg
    )


def routes_overlap(route1: Sequence[Waypoint], route2: Sequence[Waypoint]) -> bool:
    """True if the padded bounding boxes of two routes overlap."""
    box1 = create_bounding_box(route1)
    box2 = create_bounding_box(route2)

    if box1 is None or box2 is None:
        return False

    return box1.overlaps(box2)


def create_protected_airspace(
    point1: Waypoint,
    point2: Waypoint,
    radius_nm: float
) -> List[LatLon]:
    """
    Build the protected airspace polygon around one route leg.

    The polygon approximates a capsule: a semicircle of `radius_nm` behind
    `point1`, a semicircle ahead of `point2`, joined by the two sides
    parallel to the leg. Each cap is sampled every 15 degrees and the first
    vertex is repeated at the end to close the ring.

    Args:
        point1: Leg start
        point2: Leg end
        radius_nm: Applicable lateral separation minimum

    Returns:
        Closed list of (lat, lon) vertices

    Example:
        >>> leg_start = Waypoint("A", 0.0, 0.0)
        >>> leg_end = Waypoint("B", 0.0, 1.0)
        >>> polygon = create_protected_airspace(leg_start, leg_end, 23)
        >>> len(polygon)
        27
    """
    track = calculate_bearing(point1.lat, point1.lon, point2.lat, point2.lon)
    polygon = []

    # Cap behind the leg start, sweeping from the left side round to the right
    for angle in range(0, 181, CAP_STEP_DEG):
        heading = track - 90 - angle
        polygon.append(destination_point(point1.lat, point1.lon, radius_nm, heading))

    # Cap ahead of the leg end, sweeping from the right side round to the left
    for angle in range(0, 181, CAP_STEP_DEG):
        heading = track + 90 - angle
        polygon.append(destination_point(point2.lat, point2.lon, radius_nm, heading))

    polygon.append(polygon[0])
    return polygon


def find_polygon_line_intersections(
    polygon: Sequence[LatLon],
    line_start: LatLon,
    line_end: LatLon
) -> List[LatLon]:
    """
    Points where a line segment crosses the polygon boundary.

    Duplicates (within 0.01 nm, e.g. a crossing exactly at a vertex) are
    collapsed. Points are returned in polygon edge order.
    """
    intersections: List[LatLon] = []

    for i in range(1, len(polygon)):
        point = segment_intersection(polygon[i - 1], polygon[i], line_start, line_end)
        if point is not None:
            _append_unique(intersections, point)

    return intersections


def interpolate_time(wp1: Waypoint, wp2: Waypoint, point: LatLon) -> Optional[datetime]:
    """
    Time at which a flight on leg wp1-wp2 passes `point`.

    Linear in distance flown from wp1.

    Returns:
        Interpolated time, or None if either waypoint has no ETO
    """
    if wp1.eto is None or wp2.eto is None:
        return None

    total_distance = haversine_distance(wp1.lat, wp1.lon, wp2.lat, wp2.lon)
    partial_distance = haversine_distance(wp1.lat, wp1.lon, point[0], point[1])
    ratio = partial_distance / total_distance if total_distance > 0 else 0.0

    return wp1.eto + (wp2.eto - wp1.eto) * ratio


def leg_conflict_segment(
    polygon: Sequence[LatLon],
    wp1: Waypoint,
    wp2: Waypoint
) -> Optional[ConflictSegment]:
    """
    Portion of leg wp1-wp2 that lies inside `polygon`.

    Entry and exit are the boundary crossings, plus either leg endpoint
    that already lies inside the polygon (a leg that starts or ends inside
    the protected airspace only crosses the boundary once, or not at all).
    At least two distinct points are needed to form a segment.

    Returns:
        ConflictSegment ordered along the leg, or None
    """
    points = find_polygon_line_intersections(polygon, wp1.position, wp2.position)

    for endpoint in (wp1.position, wp2.position):
        if point_in_polygon(endpoint, polygon):
            _append_unique(points, endpoint)

    if len(points) < 2:
        return None

    points.sort(key=lambda p: haversine_distance(wp1.lat, wp1.lon, p[0], p[1]))
    entry, exit_ = points[0], points[-1]

    start_time = interpolate_time(wp1, wp2, entry)
    end_time = interpolate_time(wp1, wp2, exit_)
    if start_time is None or end_time is None:
        return None

    return ConflictSegment(
        start_point=entry,
        end_point=exit_,
        start_time=start_time,
        end_time=end_time
    )


def calculate_area_of_conflict(
    route1: Sequence[Waypoint],
    route2: Sequence[Waypoint],
    lateral_sep_nm: float
) -> List[ConflictSegment]:
    """
    All conflict segments between two routes.

    For every leg of `route1` a protected airspace polygon is built at the
    lateral minimum; every leg of `route2` is tested against it. Times
    come from `route2`'s ETOs.

    Args:
        route1: Route whose legs are protected
        route2: Route tested against the protected airspace
        lateral_sep_nm: Polygon radius

    Returns:
        Conflict segments in leg order (unsorted by time)
    """
    segments = []

    for i in range(1, len(route1)):
        polygon = create_protected_airspace(route1[i - 1], route1[i], lateral_sep_nm)

        for j in range(1, len(route2)):
            segment = leg_conflict_segment(polygon, route2[j - 1], route2[j])
            if segment is not None:
                segments.append(segment)

    return segments


def _append_unique(points: List[LatLon], point: LatLon) -> None:
    for existing in points:
        if haversine_distance(existing[0], existing[1], point[0], point[1]) < DUPLICATE_POINT_NM:
            return
    points.append(point)
