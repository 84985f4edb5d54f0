"""
Strava activity normalizer.

Converts the activity-with-streams JSON written by the Strava fetcher into an
ActivityInput. No metric logic here: this only maps fields and zips each value
stream with the time stream.

Activity fields (flat, straight from /athlete/activities):
  id, name, start_date ("2025-01-15T07:30:00Z"), distance (m),
  moving_time (s), elapsed_time (s), type, max_speed (m/s), ...

Streams come in either of two shapes:

  fetcher file:   "streams": {"time": [0, 1, ...], "watts": [180, 182, ...]}
  raw API reply:  "streams": {"time": {"data": [...]}, "watts": {"data": [...]}}

Both are handled by _stream_data(). Stream key mapping:
  Strava key        → stream type
  watts             → power
  heartrate         → heart_rate
  cadence           → cadence
  velocity_smooth   → speed
  altitude          → elevation
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cyclemetrics.analysis.pipeline import (
    STREAM_CADENCE,
    STREAM_ELEVATION,
    STREAM_HEART_RATE,
    STREAM_POWER,
    STREAM_SPEED,
    ActivityInput,
)
from cyclemetrics.analysis.series import InvalidStreamError

logger = logging.getLogger(__name__)

STRAVA_STREAM_KEYS = {
    "watts": STREAM_POWER,
    "heartrate": STREAM_HEART_RATE,
    "cadence": STREAM_CADENCE,
    "velocity_smooth": STREAM_SPEED,
    "altitude": STREAM_ELEVATION,
}

INDEX_FILENAME = "index.json"


def _parse_strava_datetime(s: Any) -> datetime:
    """Parse "YYYY-MM-DDTHH:MM:SSZ" (or any ISO 8601 string) as an aware UTC datetime."""
    if not isinstance(s, str):
        raise ValueError(f"start date {s!r} is not a string")
    s = s.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    parsed = datetime.fromisoformat(s)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _number(raw: Dict[str, Any], key: str) -> Optional[float]:
    """raw[key] as a float, None when absent; ValueError if it is not numeric."""
    value = raw.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"'{key}' is {value!r}, expected a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' is {value!r}, expected a number") from None


def _stream_data(raw: Any) -> Optional[List[Any]]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        raw = raw.get("data")
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InvalidStreamError(f"stream data is {type(raw).__name__}, expected a list")
    return raw


def normalize_strava_activity(raw: Dict[str, Any]) -> ActivityInput:
    """
    Map a Strava activity dict (with optional "streams") to an ActivityInput.

    Raises:
        KeyError: "id" or "start_date" missing.
        ValueError: an unparseable start date or a non-numeric summary field.
        InvalidStreamError: a value stream whose length differs from "time".
    """
    if not isinstance(raw, dict):
        raise ValueError(f"activity is {type(raw).__name__}, expected an object")
    if "id" not in raw:
        raise KeyError("'id' not found in activity. Keys present: " + str(list(raw.keys())))
    activity_id = str(raw["id"])

    time_str = raw.get("start_date") or raw.get("start_date_local")
    if time_str is None:
        raise KeyError(
            f"Neither 'start_date' nor 'start_date_local' found in activity {activity_id}"
        )

    streams: Dict[str, Optional[List]] = {}
    raw_streams = raw.get("streams") or {}
    try:
        if not isinstance(raw_streams, dict):
            raise InvalidStreamError(
                f"streams is {type(raw_streams).__name__}, expected an object"
            )
        time_data = _stream_data(raw_streams.get("time"))
        for strava_key, stream_type in STRAVA_STREAM_KEYS.items():
            data = _stream_data(raw_streams.get(strava_key))
            if data is None:
                continue
            if time_data is None:
                logger.warning(
                    "Activity %s has a %s stream but no time stream; ignoring it",
                    activity_id, strava_key,
                )
                continue
            if len(data) != len(time_data):
                raise InvalidStreamError(
                    f"{len(data)} values for {len(time_data)} timestamps",
                    stream=stream_type,
                )
            streams[stream_type] = list(zip(time_data, data))
    except InvalidStreamError as exc:
        exc.activity_id = activity_id
        raise

    return ActivityInput(
        activity_id=activity_id,
        name=raw.get("name", ""),
        start_time=_parse_strava_datetime(time_str),
        distance_meters=_number(raw, "distance") or 0.0,
        moving_time_seconds=(
            _number(raw, "moving_time") or _number(raw, "elapsed_time") or 0.0
        ),
        max_speed_ms=_number(raw, "max_speed"),
        streams=streams,
    )


def load_activity_file(path: Union[str, Path]) -> ActivityInput:
    with open(path, encoding="utf-8") as f:
        return normalize_strava_activity(json.load(f))


def load_activity_dir(
    path: Union[str, Path],
    failures: Optional[Dict[str, str]] = None,
) -> List[ActivityInput]:
    """
    Load every *.json activity in a directory, oldest first.

    index.json (the fetcher's metadata-only index) is skipped. A file that
    cannot be normalized is logged and skipped; pass a dict as failures to
    collect file name -> error.
    """
    directory = Path(path)
    if not directory.is_dir():
        raise FileNotFoundError(f"Activity directory not found: {directory}")

    activities = []
    for file in sorted(directory.glob("*.json")):
        if file.name == INDEX_FILENAME:
            continue
        try:
            activities.append(load_activity_file(file))
        except (KeyError, ValueError) as exc:
            logger.warning("Skipping %s: %s", file.name, exc)
            if failures is not None:
                failures[file.name] = str(exc)
    logger.info("Loaded %d activities from %s", len(activities), directory)
    return sorted(activities, key=lambda a: a.start_time)
