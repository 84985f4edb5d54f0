"""Shared test fixtures."""
from datetime import datetime, timezone

import pytest

from cyclemetrics.analysis.pipeline import ActivityInput
from cyclemetrics.analysis.rider import RiderConfig, make_rider


@pytest.fixture(name="rider")
def rider_fixture() -> RiderConfig:
    """FTP 250 W, max HR 185, default zone boundaries (0.55/0.75/0.90/1.0)."""
    return make_rider(ftp_watts=250.0, max_hr_bpm=185)


@pytest.fixture(name="steady_ride")
def steady_ride_fixture() -> ActivityInput:
    """One hour at a constant 200 W / 140 bpm / 90 rpm, sampled at 1 Hz."""
    seconds = range(3600)
    return ActivityInput(
        activity_id="1001",
        name="Steady Hour",
        start_time=datetime(2025, 1, 15, 7, 30, tzinfo=timezone.utc),
        distance_meters=32000.0,
        moving_time_seconds=3600.0,
        streams={
            "power": [(t, 200.0) for t in seconds],
            "heart_rate": [(t, 140) for t in seconds],
            "cadence": [(t, 90) for t in seconds],
            "speed": [(t, 8.9) for t in seconds],
        },
    )
