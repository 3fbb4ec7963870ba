"""
Inbound engine messages for the ATOP conflict probe.

Typed messages the ConflictEngine accepts, and the parser for the
`{"type": ..., "data": ...}` envelopes that feeders send.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, Union

from atop_probe.flight_record import FlightRecord, InvalidFlightRecordError

logger = logging.getLogger(__name__)


class UnknownMessageError(ValueError):
    """Raised for an envelope whose type the engine does not handle."""


@dataclass(frozen=True)
class UpsertRecord:
    record: FlightRecord


@dataclass(frozen=True)
class RemoveRecord:
    callsign: str


@dataclass(frozen=True)
class BulkReplace:
    records: Tuple[FlightRecord, ...] = ()


@dataclass(frozen=True)
class RequestProbe:
    pass


@dataclass(frozen=True)
class SetConfig:
    updates: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Stop:
    pass


Message = Union[UpsertRecord, RemoveRecord, BulkReplace, RequestProbe, SetConfig, Start, Stop]


def parse_records(payload: Any) -> Tuple[FlightRecord, ...]:
    """
    Parse a batch of feeder records, skipping malformed ones.

    Args:
        payload: List of record mappings, or a {"FDRs": [...]} envelope

    Returns:
        Tuple of valid FlightRecords

    Raises:
        InvalidFlightRecordError: If the batch itself is not a list
    """
    if isinstance(payload, Mapping):
        payload = payload.get('FDRs') or payload.get('fdrs') or []

    if payload is None:
        payload = []
    if not isinstance(payload, (list, tuple)):
        raise InvalidFlightRecordError(f"Record batch must be a list, got {type(payload).__name__}")

    records = []
    for raw in payload:
        try:
            records.append(FlightRecord.from_dict(raw))
        except InvalidFlightRecordError as e:
            logger.warning(f"Dropping malformed flight record: {e}")
    return tuple(records)


def _callsign_from(data: Any) -> str:
    if isinstance(data, Mapping):
        callsign = data.get('callsign') or data.get('Callsign')
    else:
        callsign = data
    if not callsign:
        raise InvalidFlightRecordError("Remove request is missing a callsign")
    return str(callsign)


def parse_message(envelope: Mapping[str, Any]) -> Message:
    """
    Turn a feeder envelope into a typed message.

    Envelope types: updateFDR, removeFDR, bulkUpdateFDRs, requestProbe,
    setConfig, start, stop.

    Raises:
        UnknownMessageError: If the type is missing or unknown
        InvalidFlightRecordError: If an updateFDR/removeFDR payload is unusable

    Example:
        >>> parse_message({'type': 'removeFDR', 'data': {'callsign': 'ANZ1'}})
        RemoveRecord(callsign='ANZ1')
    """
    message_type = envelope.get('type') if isinstance(envelope, Mapping) else None
    data = envelope.get('data') if isinstance(envelope, Mapping) else None

    if message_type == 'updateFDR':
        return UpsertRecord(FlightRecord.from_dict(data))
    elif message_type == 'removeFDR':
        return RemoveRecord(_callsign_from(data))
    elif message_type == 'bulkUpdateFDRs':
        return BulkReplace(parse_records(data))
    elif message_type == 'requestProbe':
        return RequestProbe()
    elif message_type == 'setConfig':
        return SetConfig(dict(data or {}))
    elif message_type == 'start':
        return Start()
    elif message_type == 'stop':
        return Stop()

    raise UnknownMessageError(f"Unknown message type: {message_type!r}")
