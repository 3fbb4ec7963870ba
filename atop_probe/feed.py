"""
Flight record feed files for the ATOP conflict probe.

Loads flight records from JSON files in the feeder format, either a bare
list of records or an {"FDRs": [...]} envelope.
"""

import json
import logging
from pathlib import Path
from typing import Tuple, Union

from atop_probe.flight_record import FlightRecord
from atop_probe.messages import parse_records

logger = logging.getLogger(__name__)


def load_records(path: Union[str, Path]) -> Tuple[FlightRecord, ...]:
    """
    Load flight records from a JSON feed file.

    Malformed records are logged and skipped.

    Args:
        path: Path to the feed file

    Returns:
        Tuple of FlightRecords in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not valid JSON or has the wrong shape

    Example:
        >>> records = load_records("data/sample_feed.json")
        >>> print(f"Loaded {len(records)} records")
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Feed file not found: {path}")

    with open(path, 'r') as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid feed file {path}: {e}")

    if not isinstance(payload, (list, dict)):
        raise ValueError(f"Invalid feed file {path}: expected a list or an FDRs envelope")

    records = parse_records(payload)
    logger.info(f"Loaded {len(records)} flight records from {path}")
    return records
