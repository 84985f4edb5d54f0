"""Rider configuration: FTP, max HR and power-zone boundaries."""
from dataclasses import dataclass
from typing import Sequence, Tuple

# Lower bounds of power zones 2-5 as fractions of FTP. Zone 5 is unbounded above.
DEFAULT_POWER_ZONE_BOUNDARIES: Tuple[float, float, float, float] = (0.55, 0.75, 0.90, 1.0)


class ConfigurationError(ValueError):
    """Rider configuration that no calculator can work with."""


@dataclass(frozen=True)
class RiderConfig:
    ftp_watts: float
    max_hr_bpm: int
    zone_boundaries: Tuple[float, ...] = DEFAULT_POWER_ZONE_BOUNDARIES

    def validate(self) -> "RiderConfig":
        """
        Raise ConfigurationError unless FTP and max HR are positive and there are
        exactly 4 strictly increasing zone boundaries in (0, 1].
        """
        if not self.ftp_watts or self.ftp_watts <= 0:
            raise ConfigurationError(f"ftp_watts must be positive, got {self.ftp_watts!r}")
        if not self.max_hr_bpm or self.max_hr_bpm <= 0:
            raise ConfigurationError(f"max_hr_bpm must be positive, got {self.max_hr_bpm!r}")
        bounds = tuple(self.zone_boundaries)
        if len(bounds) != 4:
            raise ConfigurationError(f"expected 4 zone boundaries, got {len(bounds)}")
        if any(b <= 0 or b > 1 for b in bounds):
            raise ConfigurationError(f"zone boundaries must lie in (0, 1], got {bounds}")
        if any(b >= nxt for b, nxt in zip(bounds, bounds[1:])):
            raise ConfigurationError(f"zone boundaries must be strictly increasing, got {bounds}")
        return self

    def zone_thresholds_watts(self) -> Tuple[float, ...]:
        return tuple(b * self.ftp_watts for b in self.zone_boundaries)


def make_rider(
    ftp_watts: float,
    max_hr_bpm: int,
    zone_boundaries: Sequence[float] = DEFAULT_POWER_ZONE_BOUNDARIES,
) -> RiderConfig:
    """Build and validate a RiderConfig in one step."""
    return RiderConfig(
        ftp_watts=float(ftp_watts),
        max_hr_bpm=int(max_hr_bpm),
        zone_boundaries=tuple(float(b) for b in zone_boundaries),
    ).validate()
