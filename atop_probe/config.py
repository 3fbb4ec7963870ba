"""
Probe configuration for the ATOP conflict probe.

Defaults live in `data/probe_config.json` and are mirrored in
DEFAULT_CONFIG so the engine works without the data directory. Keys use the
same camelCase names as the SetConfig message.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, float] = {
    'checkIntervalMs': 5000,
    'advisoryThresholdHours': 2,
    'imminentThresholdMinutes': 30,
    'actualThresholdMinutes': 1,
    'sameTrackMaxAngleDeg': 45,
    'reciprocalMinAngleDeg': 135,
}

# Older feeders send the angle thresholds without the unit suffix
CONFIG_ALIASES = {
    'sameTrackMaxAngle': 'sameTrackMaxAngleDeg',
    'reciprocalMinAngle': 'reciprocalMinAngleDeg',
}

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "data" / "probe_config.json"


def merge_config(
    current: Mapping[str, Any],
    updates: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Merge recognized keys of `updates` into a copy of `current`.

    Unrecognized keys are ignored. Values that are not numbers are ignored
    too, so a bad update cannot leave the probe with an unusable threshold.

    Args:
        current: Existing configuration
        updates: Partial configuration, e.g. the body of a SetConfig message

    Returns:
        New configuration dictionary

    Example:
        >>> config = merge_config(DEFAULT_CONFIG, {'checkIntervalMs': 1000, 'colour': 'red'})
        >>> config['checkIntervalMs']
        1000
        >>> 'colour' in config
        False
    """
    merged = dict(current)

    for key, value in (updates or {}).items():
        canonical = CONFIG_ALIASES.get(key, key)

        if canonical not in DEFAULT_CONFIG:
            logger.debug(f"Ignoring unknown config key: {key}")
            continue

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.debug(f"Ignoring non-numeric value for {key}: {value!r}")
            continue

        merged[canonical] = value

    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load probe configuration from a JSON file.

    Args:
        config_path: Path to the configuration file. If None, uses
                    data/probe_config.json relative to the project root.

    Returns:
        DEFAULT_CONFIG merged with the file contents

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the file is not a JSON object
    """
    path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Probe configuration not found: {path}")

    with open(path, 'r') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid probe config {path}: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Invalid probe config {path}: expected a JSON object")

    return merge_config(DEFAULT_CONFIG, data)
