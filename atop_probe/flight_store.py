"""
In-memory flight record store for the ATOP conflict probe.

Holds the current FlightRecord for each callsign. The store is an explicit
object owned by the engine and handed to the probe; it is not global state.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Optional, Tuple

from atop_probe.flight_record import FlightRecord

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current wall-clock time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class FlightRecordStore:
    """
    Mapping from callsign to the current FlightRecord.

    All operations take an internal lock, and readers get tuple snapshots,
    so a probe never observes a half-applied bulk replace.

    Attributes:
        clock: Callable returning the current UTC time, used to stamp updates
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        """
        Initialize an empty store.

        Args:
            clock: Time source for `updated_at` stamps (default wall clock)
        """
        self.clock = clock
        self._records: Dict[str, FlightRecord] = {}
        self._lock = threading.RLock()

    def upsert(self, record: FlightRecord) -> FlightRecord:
        """
        Insert or replace the record for `record.callsign`.

        Args:
            record: Normalized flight record

        Returns:
            The stored record, stamped with its update time
        """
        stamped = replace(record, updated_at=self.clock())
        with self._lock:
            self._records[stamped.callsign] = stamped
        return stamped

    def remove(self, callsign: str) -> bool:
        """
        Remove a record.

        Returns:
            True if a record was removed, False if the callsign was unknown
        """
        with self._lock:
            return self._records.pop(callsign, None) is not None

    def bulk_replace(self, records: Iterable[FlightRecord]) -> int:
        """
        Synchronize the store against an authoritative record set.

        Callsigns not present in `records` are dropped, then every incoming
        record is upserted. An empty set clears the store.

        Args:
            records: Complete current record set from the feeder

        Returns:
            Number of stale records dropped
        """
        incoming = list(records)
        now = self.clock()
        stamped = {r.callsign: replace(r, updated_at=now) for r in incoming}

        with self._lock:
            stale = [callsign for callsign in self._records if callsign not in stamped]
            for callsign in stale:
                del self._records[callsign]
            self._records.update(stamped)

        if stale:
            logger.debug(f"Bulk replace dropped {len(stale)} stale records: {stale}")

        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def get(self, callsign: str) -> Optional[FlightRecord]:
        with self._lock:
            return self._records.get(callsign)

    def snapshot(self) -> Tuple[FlightRecord, ...]:
        """Point-in-time copy of all records, in insertion order."""
        with self._lock:
            return tuple(self._records.values())

    def eligible_records(self) -> Tuple[FlightRecord, ...]:
        """Snapshot of records that take part in probing (active, >= 2 points)."""
        return tuple(record for record in self.snapshot() if record.is_eligible)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, callsign: str) -> bool:
        with self._lock:
            return callsign in self._records

    def __repr__(self) -> str:
        """String representation of the store."""
        return f"FlightRecordStore(records={len(self)})"
