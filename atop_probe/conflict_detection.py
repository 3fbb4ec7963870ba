"""
Conflict detection for the ATOP conflict probe.

Predicts losses of separation between pairs of flight records by running
each pair through a filter pipeline: temporal overlap, vertical, bounding
box, protected airspace intersection, longitudinal, then severity. Every
stage can reject the pair, so the common no-conflict case stays cheap.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from atop_probe.config import DEFAULT_CONFIG, merge_config
from atop_probe.flight_record import FlightRecord, as_utc, isoformat_utc
from atop_probe.flight_store import utc_now
from atop_probe.navigation import LatLon
from atop_probe.protected_airspace import calculate_area_of_conflict, routes_overlap
from atop_probe.results import ConflictResults
from atop_probe.separation import (
    TrackType,
    altitude_difference,
    calculate_track_angle,
    classify_track_angle,
    lateral_minimum,
    longitudinal_distance_minimum,
    longitudinal_time_minimum,
    vertical_minimum
)

logger = logging.getLogger(__name__)


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
OPEN_ENDED_HORIZON = timedelta(hours=24)  # End of a route with no final ETO


class Severity(str, Enum):
    """Conflict status by time until predicted loss of separation."""
    ACTUAL = "Actual"
    IMMINENT = "Imminent"
    ADVISORY = "Advisory"


@dataclass(frozen=True)
class ConflictRecord:
    """
    A predicted loss of separation between two flights.

    Attributes:
        intruder_callsign: Record with the lower scan index
        active_callsign: Record with the higher scan index
        status: Severity band
        conflict_type: Same, Reciprocal or Crossing
        earliest_los: Predicted start of the loss of separation
        latest_los: Predicted end of the loss of separation
        lateral_sep: Lateral minimum applied (nm)
        vertical_sep: Vertical minimum applied (ft)
        vertical_act: Actual vertical separation (ft)
        track_angle: Angle between the two coarse tracks (deg)
        long_time_act: Time spent in the conflict segment
        long_dist_act: Length of the conflict segment (nm)
        start_point: Conflict segment entry (lat, lon)
        end_point: Conflict segment exit (lat, lon)
    """
    intruder_callsign: str
    active_callsign: str
    status: Severity
    conflict_type: TrackType
    earliest_los: datetime
    latest_los: datetime
    lateral_sep: float
    vertical_sep: float
    vertical_act: float
    track_angle: float
    long_time_act: timedelta
    long_dist_act: float
    start_point: LatLon
    end_point: LatLon

    @property
    def callsigns(self) -> Tuple[str, str]:
        return (self.intruder_callsign, self.active_callsign)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the outbound results message."""
        return {
            'intruderCallsign': self.intruder_callsign,
            'activeCallsign': self.active_callsign,
            'status': self.status.value,
            'conflictType': self.conflict_type.value,
            'earliestLos': isoformat_utc(self.earliest_los),
            'latestLos': isoformat_utc(self.latest_los),
            'latSep': self.lateral_sep,
            'verticalSep': self.vertical_sep,
            'verticalAct': self.vertical_act,
            'trkAngle': self.track_angle,
            'longTimeAct': self.long_time_act.total_seconds(),
            'longDistAct': self.long_dist_act,
        }


def operative_interval(record: FlightRecord, now: datetime) -> Tuple[datetime, datetime]:
    """
    Time window in which a record can be in conflict.

    Starts at departure (or the epoch if unknown) and ends at the ETO of
    the last route point (or 24 hours from now if unknown).
    """
    start = record.atd if record.atd is not None else EPOCH

    last_eto = record.route[-1].eto if record.route else None
    end = last_eto if last_eto is not None else now + OPEN_ENDED_HORIZON

    return start, end


def passes_temporal_test(record1: FlightRecord, record2: FlightRecord, now: datetime) -> bool:
    """True if the operative intervals of two records overlap."""
    start1, end1 = operative_interval(record1, now)
    start2, end2 = operative_interval(record2, now)

    return not (start1 > end2 or start2 > end1)


def classify_severity(
    time_until_los: timedelta,
    config: Mapping[str, Any] = DEFAULT_CONFIG
) -> Optional[Severity]:
    """
    Severity band for a predicted loss of separation.

    Args:
        time_until_los: |LOS start - now|
        config: Probe configuration with the three thresholds

    Returns:
        ACTUAL below the actual threshold, IMMINENT up to the imminent
        threshold, ADVISORY up to the advisory threshold, None beyond it
    """
    if time_until_los < timedelta(minutes=config['actualThresholdMinutes']):
        return Severity.ACTUAL

    if time_until_los <= timedelta(minutes=config['imminentThresholdMinutes']):
        return Severity.IMMINENT

    if time_until_los <= timedelta(hours=config['advisoryThresholdHours']):
        return Severity.ADVISORY

    return None


class ConflictProbe:
    """
    Pairwise conflict probe over flight records.

    The probe holds no conflict state between calls; each probe is a pure
    function of the records it is given and the evaluation instant.

    Attributes:
        config: Probe configuration (thresholds and angles)
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        """
        Initialize conflict probe.

        Args:
            config: Partial configuration merged over DEFAULT_CONFIG
        """
        self.config = merge_config(DEFAULT_CONFIG, config)

    def update_config(self, updates: Mapping[str, Any]) -> None:
        """Merge configuration updates; they apply from the next probe."""
        self.config = merge_config(self.config, updates)

    def classify_pair(self, record1: FlightRecord, record2: FlightRecord) -> Tuple[float, TrackType]:
        """
        Track angle and track type of a pair.

        Computed once per pair and used both for the longitudinal time
        minimum and for the reported conflict type.
        """
        track_angle = calculate_track_angle(record1, record2)
        track_type = classify_track_angle(
            track_angle,
            same_track_max_angle=self.config['sameTrackMaxAngleDeg'],
            reciprocal_min_angle=self.config['reciprocalMinAngleDeg']
        )
        return track_angle, track_type

    def check_pair(
        self,
        record1: FlightRecord,
        record2: FlightRecord,
        now: Optional[datetime] = None
    ) -> Optional[ConflictRecord]:
        """
        Run one pair of eligible records through the conflict pipeline.

        Args:
            record1: Intruder (lower scan index)
            record2: Active (higher scan index)
            now: Evaluation instant (default: current UTC time)

        Returns:
            ConflictRecord if a loss of separation is predicted within the
            advisory horizon, otherwise None

        Example:
            >>> probe = ConflictProbe()
            >>> conflict = probe.check_pair(record1, record2)
            >>> if conflict:
            ...     print(f"{conflict.status.value}: {conflict.callsigns}")
        """
        now = utc_now() if now is None else as_utc(now)

        pair = f"{record1.callsign}/{record2.callsign}"

        # 1. Temporal overlap
        if not passes_temporal_test(record1, record2, now):
            logger.debug(f"{pair}: no temporal overlap")
            return None

        # 2. Vertical
        vertical_sep = vertical_minimum(record1, record2)
        vertical_act = altitude_difference(record1, record2)
        if vertical_act >= vertical_sep:
            logger.debug(f"{pair}: vertically separated ({vertical_act:.0f} >= {vertical_sep} ft)")
            return None

        # 3. Bounding boxes
        if not routes_overlap(record1.route, record2.route):
            logger.debug(f"{pair}: bounding boxes do not overlap")
            return None

        # 4. Protected airspace
        lateral_sep = lateral_minimum(record1, record2)
        segments = calculate_area_of_conflict(record1.route, record2.route, lateral_sep)
        if not segments:
            logger.debug(f"{pair}: laterally separated ({lateral_sep} nm)")
            return None

        # 5. Earliest conflict segment
        first_conflict = min(segments, key=lambda s: s.start_time)

        # 6. Longitudinal; either criterion below its minimum is a loss of separation
        track_angle, track_type = self.classify_pair(record1, record2)
        long_time_act = first_conflict.duration
        long_dist_act = first_conflict.distance_nm
        time_violated = long_time_act < longitudinal_time_minimum(record1, record2, track_type)
        distance_violated = long_dist_act < longitudinal_distance_minimum(record1, record2)
        if not (time_violated or distance_violated):
            logger.debug(f"{pair}: longitudinally separated")
            return None

        # 7. Severity
        status = classify_severity(abs(first_conflict.start_time - now), self.config)
        if status is None:
            logger.debug(f"{pair}: loss of separation beyond advisory horizon")
            return None

        return ConflictRecord(
            intruder_callsign=record1.callsign,
            active_callsign=record2.callsign,
            status=status,
            conflict_type=track_type,
            earliest_los=first_conflict.start_time,
            latest_los=first_conflict.end_time,
            lateral_sep=lateral_sep,
            vertical_sep=vertical_sep,
            vertical_act=vertical_act,
            track_angle=track_angle,
            long_time_act=long_time_act,
            long_dist_act=long_dist_act,
            start_point=first_conflict.start_point,
            end_point=first_conflict.end_point
        )

    def probe(
        self,
        records: Sequence[FlightRecord],
        now: Optional[datetime] = None
    ) -> ConflictResults:
        """
        Probe all pairs of eligible records.

        Performs pairwise comparison of all eligible records (O(n^2)).
        Ineligible records (not ACTIVE, or fewer than two route points) are
        skipped silently.

        Args:
            records: Snapshot of flight records, in scan order
            now: Evaluation instant (default: current UTC time)

        Returns:
            ConflictResults grouped by severity

        Example:
            >>> probe = ConflictProbe()
            >>> results = probe.probe(store.eligible_records())
            >>> print(f"Detected {len(results)} conflicts")
        """
        now = utc_now() if now is None else as_utc(now)

        eligible = [record for record in records if record.is_eligible]
        conflicts = []

        for i in range(len(eligible)):
            for j in range(i + 1, len(eligible)):
                conflict = self.check_pair(eligible[i], eligible[j], now)
                if conflict is not None:
                    conflicts.append(conflict)

        results = ConflictResults(conflicts, generated_at=now)
        logger.debug(
            f"Probed {len(eligible)} records: {results.actual_count} actual, "
            f"{results.imminent_count} imminent, {results.advisory_count} advisory"
        )
        return results

    def __repr__(self) -> str:
        """String representation of conflict probe."""
        return (
            f"ConflictProbe(actual<{self.config['actualThresholdMinutes']}min, "
            f"imminent<={self.config['imminentThresholdMinutes']}min, "
            f"advisory<={self.config['advisoryThresholdHours']}h)"
        )
