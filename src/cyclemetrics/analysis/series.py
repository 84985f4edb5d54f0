"""
SampleSeries: the validated, time-ordered container every calculator reads.

A series holds one scalar stream (power, heart rate, cadence, ...) as parallel
tuples of offsets (whole seconds from activity start) and values. Gaps in the
recording are absent values (None), never skipped indices.

Two ways a stream can be "missing":
  - not present: the provider sent no points at all → SampleSeries.empty()
  - present but degenerate: points were sent but fewer than 2 survive
    cleaning → DegenerateStreamError (the pipeline treats it as unavailable)

Structurally broken input (negative or non-integer offsets) raises
InvalidStreamError, which aborts the owning activity.
"""
import math
from bisect import bisect_left
from dataclasses import dataclass
from statistics import median
from typing import Iterable, List, Optional, Sequence, Tuple

RawPoint = Tuple[int, Optional[float]]

# Two present samples further apart than this many nominal intervals are a
# recording pause: the grid between them is absent, not interpolated.
MAX_BRIDGED_GAP_INTERVALS = 2


class InvalidStreamError(ValueError):
    """A stream whose timestamps cannot be repaired."""

    def __init__(self, message: str, activity_id: Optional[str] = None, stream: Optional[str] = None):
        super().__init__(message)
        self.activity_id = activity_id
        self.stream = stream

    def __str__(self) -> str:
        msg = super().__str__()
        if self.stream:
            msg = f"{self.stream}: {msg}"
        if self.activity_id is not None:
            msg = f"activity {self.activity_id}: {msg}"
        return msg


class DegenerateStreamError(InvalidStreamError):
    """Stream was sent but has too few usable points to establish an interval."""


class RangeError(ValueError):
    """Invalid slice or window request (programming-contract violation)."""


def _clean_offset(raw) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidStreamError(f"timestamp offset {raw!r} is not a number")
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            raise InvalidStreamError(f"timestamp offset {raw!r} is not a whole second")
        raw = int(raw)
    if raw < 0:
        raise InvalidStreamError(f"timestamp offset {raw} is negative")
    return raw


def _clean_value(raw) -> Optional[float]:
    """Absent, non-numeric and non-finite readings all become None."""
    if raw is None or isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class SampleSeries:
    """
    Immutable series of (offset, value) samples with strictly increasing offsets.

    sampling_interval_seconds is the nominal interval. For a series read from a
    provider it is the median spacing; resample_to_fixed_interval() produces a
    series where every spacing equals it.
    """

    timestamps: Tuple[int, ...]
    values: Tuple[Optional[float], ...]
    sampling_interval_seconds: int = 1

    def __post_init__(self):
        if len(self.timestamps) != len(self.values):
            raise InvalidStreamError("timestamps and values differ in length")
        if self.sampling_interval_seconds <= 0:
            raise InvalidStreamError("sampling interval must be positive")

    # ─── Construction ─────────────────────────────────────────────────────────

    @classmethod
    def empty(cls, sampling_interval_seconds: int = 1) -> "SampleSeries":
        """A stream the provider did not record at all."""
        return cls((), (), sampling_interval_seconds)

    @classmethod
    def construct(
        cls,
        raw_points: Iterable[Sequence],
        sampling_interval_seconds: Optional[int] = None,
    ) -> "SampleSeries":
        """
        Build a series from provider (offset, value) pairs.

        Points whose offset is not greater than the last kept offset are
        dropped, so the first occurrence of a duplicate wins. An empty input is
        an intentionally empty stream; anything else must leave at least two
        points after cleaning.

        Raises:
            InvalidStreamError: malformed offsets.
            DegenerateStreamError: fewer than 2 points survive cleaning.
        """
        timestamps: List[int] = []
        values: List[Optional[float]] = []
        received = 0

        for point in raw_points:
            received += 1
            try:
                raw_offset, raw_value = point
            except (TypeError, ValueError):
                raise InvalidStreamError(f"point {point!r} is not an (offset, value) pair") from None
            offset = _clean_offset(raw_offset)
            if timestamps and offset <= timestamps[-1]:
                continue
            timestamps.append(offset)
            values.append(_clean_value(raw_value))

        if received == 0:
            return cls.empty(sampling_interval_seconds or 1)

        if len(timestamps) < 2:
            raise DegenerateStreamError(
                f"{len(timestamps)} usable point(s) after cleaning {received}; need at least 2"
            )

        if sampling_interval_seconds is None:
            gaps = [b - a for a, b in zip(timestamps, timestamps[1:])]
            sampling_interval_seconds = max(1, int(round(median(gaps))))

        return cls(tuple(timestamps), tuple(values), sampling_interval_seconds)

    # ─── Properties ───────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.timestamps)

    @property
    def samples(self) -> Tuple[RawPoint, ...]:
        return tuple(zip(self.timestamps, self.values))

    @property
    def is_empty(self) -> bool:
        """True when no sample carries a value; calculators treat this as unavailable."""
        return all(v is None for v in self.values)

    @property
    def valid_count(self) -> int:
        return sum(1 for v in self.values if v is not None)

    @property
    def start_offset(self) -> Optional[int]:
        return self.timestamps[0] if self.timestamps else None

    @property
    def end_offset(self) -> Optional[int]:
        return self.timestamps[-1] if self.timestamps else None

    @property
    def duration_seconds(self) -> int:
        """Span covered by the series, counting the last sample's interval."""
        if not self.timestamps:
            return 0
        return self.timestamps[-1] - self.timestamps[0] + self.sampling_interval_seconds

    @property
    def is_fixed_interval(self) -> bool:
        step = self.sampling_interval_seconds
        return all(b - a == step for a, b in zip(self.timestamps, self.timestamps[1:]))

    def present_values(self) -> List[float]:
        return [v for v in self.values if v is not None]

    # ─── Transformations ──────────────────────────────────────────────────────

    def resample_to_fixed_interval(self, interval_seconds: int = 1) -> "SampleSeries":
        """
        Linear interpolation onto a regular grid.

        The grid starts at the first offset and steps by interval_seconds up to
        the last offset. A grid instant that lands on a sample takes its value;
        one between two present samples is interpolated; one touching an absent
        sample on either side is absent. Neither is interpolated across a
        pause longer than MAX_BRIDGED_GAP_INTERVALS nominal intervals.
        """
        if interval_seconds <= 0:
            raise RangeError(f"resample interval must be positive, got {interval_seconds}")
        if not self.timestamps:
            return SampleSeries.empty(interval_seconds)
        if interval_seconds == self.sampling_interval_seconds and self.is_fixed_interval:
            return self

        start, end = self.timestamps[0], self.timestamps[-1]
        max_gap = MAX_BRIDGED_GAP_INTERVALS * self.sampling_interval_seconds
        grid = range(start, end + 1, interval_seconds)
        out: List[Optional[float]] = []
        i = 0
        last = len(self.timestamps) - 1

        for t in grid:
            # advance so that timestamps[i] <= t < timestamps[i + 1]
            while i < last and self.timestamps[i + 1] <= t:
                i += 1
            t0, v0 = self.timestamps[i], self.values[i]
            if t == t0:
                out.append(v0)
                continue
            t1, v1 = self.timestamps[i + 1], self.values[i + 1]
            if v0 is None or v1 is None or t1 - t0 > max_gap:
                out.append(None)
                continue
            frac = (t - t0) / (t1 - t0)
            out.append(v0 + (v1 - v0) * frac)

        return SampleSeries(tuple(grid), tuple(out), interval_seconds)

    def slice(self, start_offset: float, end_offset: float) -> "SampleSeries":
        """
        Samples with start_offset <= offset < end_offset.

        Raises:
            RangeError: start after end, or the range misses the series entirely.
        """
        if start_offset > end_offset:
            raise RangeError(f"slice start {start_offset} is after end {end_offset}")
        if not self.timestamps:
            raise RangeError("cannot slice an empty series")
        if end_offset <= self.timestamps[0] or start_offset > self.timestamps[-1]:
            raise RangeError(
                f"slice [{start_offset}, {end_offset}) is outside "
                f"[{self.timestamps[0]}, {self.timestamps[-1]}]"
            )
        lo = bisect_left(self.timestamps, start_offset)
        hi = bisect_left(self.timestamps, end_offset)
        return SampleSeries(
            self.timestamps[lo:hi], self.values[lo:hi], self.sampling_interval_seconds
        )
