"""FastAPI dependencies for the active rider configuration."""
from typing import Tuple

from cyclemetrics.analysis.rider import RiderConfig
from cyclemetrics.config import (
    best_effort_durations_from_settings,
    get_settings,
    rider_from_settings,
)


def get_rider() -> RiderConfig:
    """Rider built from settings; overridden in tests."""
    return rider_from_settings(get_settings())


def get_best_effort_durations() -> Tuple[int, ...]:
    return best_effort_durations_from_settings(get_settings())
