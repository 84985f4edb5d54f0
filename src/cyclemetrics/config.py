from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings

from cyclemetrics.analysis.power import (
    DEFAULT_BEST_EFFORT_DURATIONS,
    check_best_effort_durations,
)
from cyclemetrics.analysis.rider import DEFAULT_POWER_ZONE_BOUNDARIES, RiderConfig, make_rider


class Settings(BaseSettings):
    ftp_watts: float = 250.0
    max_hr: int = 185
    zone_boundaries: List[float] = list(DEFAULT_POWER_ZONE_BOUNDARIES)  # fractions of FTP
    best_effort_durations: List[int] = list(DEFAULT_BEST_EFFORT_DURATIONS)  # seconds
    max_workers: Optional[int] = None
    data_dir: str = "./data/activities"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def rider_from_settings(settings: Optional[Settings] = None) -> RiderConfig:
    """Validated RiderConfig from settings; raises ConfigurationError if unusable."""
    settings = settings or get_settings()
    return make_rider(settings.ftp_watts, settings.max_hr, settings.zone_boundaries)


def best_effort_durations_from_settings(settings: Optional[Settings] = None) -> Tuple[int, ...]:
    """Validated best-effort windows; raises ConfigurationError for a non-positive one."""
    settings = settings or get_settings()
    return check_best_effort_durations(settings.best_effort_durations)
