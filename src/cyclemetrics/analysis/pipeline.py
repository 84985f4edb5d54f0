"""
ActivityMetricsPipeline: one activity in, one ActivityMetrics record out.

Stages:
  PENDING → STREAMS_VALIDATED → METRICS_COMPUTED → ASSEMBLED

  validate_streams()  builds a SampleSeries per stream. Streams the provider
                      did not send, or sent with fewer than 2 usable points,
                      are recorded as not present. Malformed offsets raise
                      InvalidStreamError and abort this activity only.
  compute_metrics()   runs every calculator independently; an absent result
                      or a RangeError from one never stops the others.
  assemble()          packages the results into an immutable ActivityMetrics.

The pipeline owns its series and discards them once assembled. It never
mutates the RiderConfig and does no I/O, so any number of pipelines can run
side by side.
"""
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from cyclemetrics.analysis import efficiency, heart_rate, power
from cyclemetrics.analysis.result import EfficiencyResult, MetricResult
from cyclemetrics.analysis.rider import RiderConfig
from cyclemetrics.analysis.rolling import peak
from cyclemetrics.analysis.series import (
    DegenerateStreamError,
    InvalidStreamError,
    RangeError,
    RawPoint,
    SampleSeries,
)

logger = logging.getLogger(__name__)

STREAM_POWER = "power"
STREAM_HEART_RATE = "heart_rate"
STREAM_CADENCE = "cadence"
STREAM_SPEED = "speed"
STREAM_ELEVATION = "elevation"
STREAM_TYPES = (STREAM_POWER, STREAM_HEART_RATE, STREAM_CADENCE, STREAM_SPEED, STREAM_ELEVATION)


class PipelineStage(str, Enum):
    PENDING = "pending"
    STREAMS_VALIDATED = "streams_validated"
    METRICS_COMPUTED = "metrics_computed"
    ASSEMBLED = "assembled"


class PipelineStateError(RuntimeError):
    """A pipeline step was called out of order."""


@dataclass(frozen=True)
class ActivityInput:
    """
    What the ingestion collaborator supplies for one activity.

    streams maps a stream type (see STREAM_TYPES) to its (offset, value)
    points. A missing key or a None value means the stream was not recorded.
    """
    activity_id: str
    start_time: datetime
    distance_meters: float = 0.0
    moving_time_seconds: float = 0.0
    streams: Mapping[str, Optional[Sequence[RawPoint]]] = field(default_factory=dict)
    name: str = ""
    max_speed_ms: Optional[float] = None  # provider summary value, used when no speed stream


@dataclass(frozen=True)
class ActivityMetrics:
    """
    Derived metrics for one activity.

    Any metric whose inputs were missing is None; the reason is kept in
    diagnostics under the metric's field name.

    Mapping fields are copied into read-only views, so a record cannot be
    changed after it is built, not even through its dicts.
    """
    activity_id: str
    start_time: datetime
    distance_meters: float
    moving_time_seconds: float

    normalized_power: Optional[float] = None
    intensity_factor: Optional[float] = None
    tss: Optional[float] = None
    efficiency_factor: Optional[float] = None
    efficiency_basis: Optional[str] = None  # "normalized_power" | "average_power"
    zone_distribution: Optional[Mapping[int, float]] = None
    uncategorized_seconds: Optional[float] = None
    hr_zone_distribution: Optional[Mapping[int, float]] = None
    fatigue_index: Optional[float] = None
    best_efforts: Mapping[int, Optional[float]] = field(default_factory=dict)

    average_power: Optional[float] = None
    max_power: Optional[float] = None
    average_heart_rate: Optional[float] = None
    max_heart_rate: Optional[float] = None
    power_per_cadence: Optional[float] = None
    max_speed_ms: Optional[float] = None

    streams_present: Tuple[str, ...] = ()
    diagnostics: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for name in _MAPPING_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    def __reduce__(self):
        # mappingproxy does not pickle; rebuild from plain dicts (process pools)
        values = (getattr(self, f.name) for f in fields(self))
        return type(self), tuple(
            dict(v) if isinstance(v, MappingProxyType) else v for v in values
        )


_MAPPING_FIELDS = ("zone_distribution", "hr_zone_distribution", "best_efforts", "diagnostics")


class ActivityMetricsPipeline:
    """Runs the calculators for a single activity."""

    def __init__(
        self,
        activity: ActivityInput,
        rider: RiderConfig,
        best_effort_durations: Iterable[int] = power.DEFAULT_BEST_EFFORT_DURATIONS,
    ):
        # Bad configuration surfaces here, before any calculator runs.
        self.rider = rider.validate()
        self.activity = activity
        self.best_effort_durations = power.check_best_effort_durations(best_effort_durations)
        self.stage = PipelineStage.PENDING
        self._series: Dict[str, SampleSeries] = {}
        self._results: Dict[str, object] = {}
        self._diagnostics: Dict[str, str] = {}
        self._record: Optional[ActivityMetrics] = None

    def _expect(self, stage: PipelineStage) -> None:
        if self.stage is not stage:
            raise PipelineStateError(
                f"activity {self.activity.activity_id}: expected stage {stage.value}, "
                f"pipeline is at {self.stage.value}"
            )

    # ─── PENDING → STREAMS_VALIDATED ──────────────────────────────────────────

    def validate_streams(self) -> Dict[str, SampleSeries]:
        self._expect(PipelineStage.PENDING)
        activity_id = self.activity.activity_id

        for stream_type in STREAM_TYPES:
            raw = self.activity.streams.get(stream_type)
            if raw is None:
                logger.debug("activity %s: %s stream not present", activity_id, stream_type)
                continue
            try:
                series = SampleSeries.construct(raw)
            except DegenerateStreamError as exc:
                logger.debug("activity %s: %s stream degenerate: %s", activity_id, stream_type, exc)
                self._diagnostics[f"{stream_type}_stream"] = str(exc)
                continue
            except InvalidStreamError as exc:
                message = exc.args[0] if exc.args else "invalid stream"
                raise InvalidStreamError(
                    message, activity_id=activity_id, stream=exc.stream or stream_type
                ) from exc
            if series.is_empty:
                logger.debug("activity %s: %s stream has no values", activity_id, stream_type)
                continue
            self._series[stream_type] = series

        unknown = set(self.activity.streams) - set(STREAM_TYPES)
        if unknown:
            logger.debug("activity %s: ignoring streams %s", activity_id, sorted(unknown))

        self.stage = PipelineStage.STREAMS_VALIDATED
        return dict(self._series)

    # ─── STREAMS_VALIDATED → METRICS_COMPUTED ─────────────────────────────────

    def _run(self, name: str, calculator: Callable[[], object]):
        """Run one calculator; a contract violation becomes an absent result."""
        try:
            result = calculator()
        except RangeError as exc:
            logger.warning(
                "activity %s: %s calculator rejected its input: %s",
                self.activity.activity_id, name, exc,
            )
            result = MetricResult.missing(str(exc))
        self._results[name] = result
        return result

    def _power_metrics(self, watts: Optional[SampleSeries]) -> None:
        ftp = self.rider.ftp_watts
        if watts is None:
            absent = MetricResult.missing("power stream not present")
            for name in ("average_power", "max_power", "normalized_power",
                         "intensity_factor", "tss", "fatigue_index"):
                self._results[name] = absent
            self._results["zone_distribution"] = absent
            self._results["best_efforts"] = {d: absent for d in self.best_effort_durations}
            return

        grid = power.at_one_second(watts)
        self._run("average_power", lambda: power.average_power(grid))
        self._run("max_power", lambda: MetricResult.of(peak(grid), "max power"))
        np_result = self._run("normalized_power", lambda: power.normalized_power(grid))
        if_result = self._run("intensity_factor", lambda: power.intensity_factor(np_result, ftp))
        recorded = power.recorded_seconds(grid)
        self._run(
            "tss",
            lambda: power.training_stress_score(recorded, np_result, if_result, ftp),
        )
        self._run("fatigue_index", lambda: power.fatigue_index(grid))
        self._run("zone_distribution", lambda: power.power_zone_distribution(grid, self.rider))
        self._run("best_efforts", lambda: power.best_efforts(grid, self.best_effort_durations))

    def _heart_rate_metrics(self, hr: Optional[SampleSeries]) -> None:
        if hr is None:
            absent = MetricResult.missing("heart rate stream not present")
            self._results["average_heart_rate"] = absent
            self._results["max_heart_rate"] = absent
            self._results["hr_zone_distribution"] = None
            return
        grid = power.at_one_second(hr)
        self._run("average_heart_rate", lambda: heart_rate.average_heart_rate(grid))
        self._run("max_heart_rate", lambda: heart_rate.max_heart_rate(grid))
        self._run(
            "hr_zone_distribution",
            lambda: heart_rate.hr_zone_distribution(grid, self.rider.max_hr_bpm),
        )

    def _max_speed(self, speed: Optional[SampleSeries]) -> None:
        if speed is not None:
            grid = power.at_one_second(speed)
            self._run("max_speed_ms", lambda: MetricResult.of(peak(grid), "max speed"))
        elif self.activity.max_speed_ms is not None:
            self._results["max_speed_ms"] = MetricResult.of(self.activity.max_speed_ms, "max speed")
        else:
            self._results["max_speed_ms"] = MetricResult.missing("speed stream not present")

    def compute_metrics(self) -> Dict[str, object]:
        self._expect(PipelineStage.STREAMS_VALIDATED)

        self._power_metrics(self._series.get(STREAM_POWER))
        self._heart_rate_metrics(self._series.get(STREAM_HEART_RATE))
        self._max_speed(self._series.get(STREAM_SPEED))

        np_result = self._results["normalized_power"]
        avg_power = self._results["average_power"]
        self._run(
            "efficiency_factor",
            lambda: efficiency.efficiency_factor(
                np_result, avg_power, self._results["average_heart_rate"]
            ),
        )
        self._run(
            "power_per_cadence",
            lambda: efficiency.power_per_cadence(avg_power, self._series.get(STREAM_CADENCE)),
        )

        self.stage = PipelineStage.METRICS_COMPUTED
        return dict(self._results)

    # ─── METRICS_COMPUTED → ASSEMBLED ─────────────────────────────────────────

    def _value(self, name: str) -> Optional[float]:
        result = self._results.get(name)
        if not isinstance(result, MetricResult):
            return None
        if not result.available:
            logger.debug(
                "activity %s: %s is none (%s)", self.activity.activity_id, name, result.reason
            )
            self._diagnostics[name] = result.reason or "unavailable"
        return result.value

    def assemble(self) -> ActivityMetrics:
        self._expect(PipelineStage.METRICS_COMPUTED)

        zones = self._results.get("zone_distribution")
        if isinstance(zones, power.ZoneDistribution):
            zone_seconds, uncategorized = dict(zones.seconds), zones.uncategorized_seconds
        else:
            zone_seconds, uncategorized = None, None
            if isinstance(zones, MetricResult):
                self._diagnostics["zone_distribution"] = zones.reason or "unavailable"

        hr_zones = self._results.get("hr_zone_distribution")
        if not isinstance(hr_zones, dict):
            hr_zones = None

        efforts: Dict[int, Optional[float]] = {}
        raw_efforts = self._results.get("best_efforts")
        if isinstance(raw_efforts, dict):
            for duration, result in raw_efforts.items():
                efforts[duration] = result.value
                if not result.available:
                    self._diagnostics[f"best_effort_{duration}s"] = result.reason or "unavailable"

        ef = self._results.get("efficiency_factor")
        basis = ef.basis if isinstance(ef, EfficiencyResult) else None

        self._record = ActivityMetrics(
            activity_id=self.activity.activity_id,
            start_time=self.activity.start_time,
            distance_meters=float(self.activity.distance_meters or 0.0),
            moving_time_seconds=float(self.activity.moving_time_seconds or 0.0),
            normalized_power=self._value("normalized_power"),
            intensity_factor=self._value("intensity_factor"),
            tss=self._value("tss"),
            efficiency_factor=self._value("efficiency_factor"),
            efficiency_basis=basis,
            zone_distribution=zone_seconds,
            uncategorized_seconds=uncategorized,
            hr_zone_distribution=hr_zones,
            fatigue_index=self._value("fatigue_index"),
            best_efforts=efforts,
            average_power=self._value("average_power"),
            max_power=self._value("max_power"),
            average_heart_rate=self._value("average_heart_rate"),
            max_heart_rate=self._value("max_heart_rate"),
            power_per_cadence=self._value("power_per_cadence"),
            max_speed_ms=self._value("max_speed_ms"),
            streams_present=tuple(s for s in STREAM_TYPES if s in self._series),
            diagnostics=dict(self._diagnostics),
        )

        # Series are not retained past assembly.
        self._series.clear()
        self._results.clear()
        self.stage = PipelineStage.ASSEMBLED
        return self._record

    @property
    def record(self) -> Optional[ActivityMetrics]:
        return self._record

    def run(self) -> ActivityMetrics:
        self.validate_streams()
        self.compute_metrics()
        return self.assemble()


def compute_activity_metrics(
    activity: ActivityInput,
    rider: RiderConfig,
    best_effort_durations: Iterable[int] = power.DEFAULT_BEST_EFFORT_DURATIONS,
) -> ActivityMetrics:
    """
    Compute the full ActivityMetrics record for one activity.

    Raises:
        ConfigurationError: invalid rider configuration.
        InvalidStreamError: a stream with malformed offsets (carries activity_id).
    """
    return ActivityMetricsPipeline(activity, rider, best_effort_durations).run()
