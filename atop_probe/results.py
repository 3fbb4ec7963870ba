"""
Probe result aggregation for the ATOP conflict probe.

Groups the flat conflict list of one probe cycle into severity buckets and
provides the outbound message, summary statistics, and a tabular view for
reports.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

import pandas as pd

from atop_probe.flight_record import isoformat_utc


# Severity values, in reporting order
ACTUAL = "Actual"
IMMINENT = "Imminent"
ADVISORY = "Advisory"
SEVERITY_ORDER = (ACTUAL, IMMINENT, ADVISORY)

RESULTS_MESSAGE_TYPE = "conflictResults"

REPORT_COLUMNS = [
    'intruderCallsign', 'activeCallsign', 'status', 'conflictType',
    'earliestLos', 'latestLos', 'latSep', 'verticalSep', 'verticalAct', 'trkAngle'
]


class ConflictResults:
    """
    Conflicts found in one probe cycle, grouped by severity.

    Each conflict lands in exactly one bucket, chosen by its status. The
    unpartitioned list keeps scan order.

    Attributes:
        all: Every conflict, in scan order
        actual: Conflicts with status Actual
        imminent: Conflicts with status Imminent
        advisory: Conflicts with status Advisory
        generated_at: Evaluation instant of the probe cycle
    """

    def __init__(self, conflicts: Iterable = (), generated_at: Optional[datetime] = None):
        """
        Group conflicts by severity.

        Args:
            conflicts: ConflictRecords from one probe cycle
            generated_at: Evaluation instant
        """
        self.all: List = list(conflicts)
        self.generated_at = generated_at

        buckets: Dict[str, List] = {severity: [] for severity in SEVERITY_ORDER}
        for conflict in self.all:
            buckets[conflict.status.value].append(conflict)

        self.actual = buckets[ACTUAL]
        self.imminent = buckets[IMMINENT]
        self.advisory = buckets[ADVISORY]

    @property
    def actual_count(self) -> int:
        return len(self.actual)

    @property
    def imminent_count(self) -> int:
        return len(self.imminent)

    @property
    def advisory_count(self) -> int:
        return len(self.advisory)

    def involving(self, callsign: str) -> List:
        """Conflicts in which `callsign` is either participant."""
        return [c for c in self.all if callsign in c.callsigns]

    def to_message(self) -> Dict[str, Any]:
        """
        Outbound results message for one probe cycle.

        Returns:
            Dictionary with the full list, the three buckets, and counts
        """
        return {
            'type': RESULTS_MESSAGE_TYPE,
            'data': {
                'all': [c.to_dict() for c in self.all],
                'actual': [c.to_dict() for c in self.actual],
                'imminent': [c.to_dict() for c in self.imminent],
                'advisory': [c.to_dict() for c in self.advisory],
                'actualCount': self.actual_count,
                'imminentCount': self.imminent_count,
                'advisoryCount': self.advisory_count,
                'generatedAt': isoformat_utc(self.generated_at) if self.generated_at else None,
            }
        }

    def to_dataframe(self) -> pd.DataFrame:
        """
        Conflicts as a table, one row per conflict, sorted by severity then LOS.

        Returns:
            DataFrame with REPORT_COLUMNS (empty with those columns if no conflicts)
        """
        if not self.all:
            return pd.DataFrame(columns=REPORT_COLUMNS)

        df = pd.DataFrame([c.to_dict() for c in self.all])[REPORT_COLUMNS]
        df['status'] = pd.Categorical(df['status'], categories=list(SEVERITY_ORDER), ordered=True)
        return df.sort_values(['status', 'earliestLos']).reset_index(drop=True)

    def get_statistics(self) -> Dict[str, Any]:
        """
        Summary statistics for the cycle.

        Returns:
            Dictionary with:
            - total_conflicts: Number of conflicts
            - severity_breakdown: Count by severity
            - type_breakdown: Count by conflict type
            - aircraft_involved: Distinct callsigns in any conflict
            - earliest_los: Earliest predicted LOS start, or None
            - min_vertical_act_ft: Smallest actual vertical separation, or None
        """
        type_counts: Dict[str, int] = {}
        callsigns = set()
        for conflict in self.all:
            type_counts[conflict.conflict_type.value] = type_counts.get(conflict.conflict_type.value, 0) + 1
            callsigns.update(conflict.callsigns)

        return {
            'total_conflicts': len(self.all),
            'severity_breakdown': {
                ACTUAL: self.actual_count,
                IMMINENT: self.imminent_count,
                ADVISORY: self.advisory_count,
            },
            'type_breakdown': type_counts,
            'aircraft_involved': len(callsigns),
            'earliest_los': min((c.earliest_los for c in self.all), default=None),
            'min_vertical_act_ft': min((c.vertical_act for c in self.all), default=None),
        }

    def __len__(self) -> int:
        return len(self.all)

    def __iter__(self) -> Iterator:
        return iter(self.all)

    def __repr__(self) -> str:
        """String representation of probe results."""
        return (
            f"ConflictResults(actual={self.actual_count}, "
            f"imminent={self.imminent_count}, "
            f"advisory={self.advisory_count})"
        )
