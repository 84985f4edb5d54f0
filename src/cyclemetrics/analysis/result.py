"""
Explicit optional result threaded through every calculator.

A MetricResult either carries a finite float or is absent with a short reason
("fewer than 30 s of power", ...). Callers test .available, never compare
against a sentinel number, so a computed zero stays distinguishable from
missing data.
"""
import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class MetricResult:
    value: Optional[float] = None
    reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.value is not None

    @classmethod
    def missing(cls, reason: str) -> "MetricResult":
        return cls(value=None, reason=reason)

    @classmethod
    def of(cls, value: Optional[float], label: str = "value") -> "MetricResult":
        """Wrap a computed number, turning None/NaN/Infinity into an absent result."""
        if value is None:
            return cls.missing(f"{label} unavailable")
        if not math.isfinite(value):
            return cls.missing(f"{label} was not finite ({value!r})")
        return cls(value=float(value))


# Efficiency factor provenance tags
BASIS_NORMALIZED_POWER = "normalized_power"
BASIS_AVERAGE_POWER = "average_power"


@dataclass(frozen=True)
class EfficiencyResult(MetricResult):
    """MetricResult that also records which power figure fed the ratio."""
    basis: Optional[str] = None
