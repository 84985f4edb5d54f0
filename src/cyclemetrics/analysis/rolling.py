"""
Fixed-window rolling statistics over a fixed-interval SampleSeries.

Both generators slide one sample at a time and yield exactly
len(series) - window_samples + 1 values (nothing when the series is shorter
than the window). A window containing any absent sample yields None rather
than a mean over fewer samples.

Each runs in O(n): rolling_mean keeps a running sum and a count of absent
samples in the window, rolling_max keeps a monotonic deque of indices.
"""
from collections import deque
from typing import Iterator, Optional

from cyclemetrics.analysis.series import RangeError, SampleSeries


def window_samples(series: SampleSeries, window_seconds: int) -> int:
    """
    Number of samples spanned by window_seconds on this series' grid.

    Raises:
        RangeError: non-positive window, a window shorter than one sample, or a
            series that has not been resampled to a fixed interval.
    """
    if window_seconds <= 0:
        raise RangeError(f"window must be positive, got {window_seconds}s")
    if not series.is_fixed_interval:
        raise RangeError("rolling windows need a fixed-interval series; resample first")
    n = window_seconds // series.sampling_interval_seconds
    if n < 1:
        raise RangeError(
            f"{window_seconds}s window is shorter than the "
            f"{series.sampling_interval_seconds}s sampling interval"
        )
    return n


def rolling_mean(series: SampleSeries, window_seconds: int) -> Iterator[Optional[float]]:
    """Lazy rolling mean; None for windows that contain an absent sample."""
    return _rolling_mean(series.values, window_samples(series, window_seconds))


def _rolling_mean(values, n: int) -> Iterator[Optional[float]]:
    if len(values) < n:
        return

    total = 0.0
    missing = 0
    for v in values[:n]:
        if v is None:
            missing += 1
        else:
            total += v
    yield (total / n) if missing == 0 else None

    for i in range(n, len(values)):
        incoming, outgoing = values[i], values[i - n]
        if incoming is None:
            missing += 1
        else:
            total += incoming
        if outgoing is None:
            missing -= 1
        else:
            total -= outgoing
        yield (total / n) if missing == 0 else None


def rolling_max(series: SampleSeries, window_seconds: int) -> Iterator[Optional[float]]:
    """Lazy rolling maximum; None for windows that contain an absent sample."""
    return _rolling_max(series.values, window_samples(series, window_seconds))


def _rolling_max(values, n: int) -> Iterator[Optional[float]]:
    if len(values) < n:
        return

    candidates: deque = deque()  # indices, values strictly decreasing
    last_missing = -1
    for i, v in enumerate(values):
        if v is None:
            last_missing = i
            candidates.clear()
        else:
            while candidates and values[candidates[-1]] <= v:
                candidates.pop()
            candidates.append(i)
        while candidates and candidates[0] <= i - n:
            candidates.popleft()

        if i < n - 1:
            continue
        if last_missing > i - n:
            yield None
        else:
            yield values[candidates[0]]


def peak(series: SampleSeries, window_seconds: Optional[int] = None) -> Optional[float]:
    """Highest complete-window maximum, or None when no window is complete."""
    if window_seconds is None:
        window_seconds = series.sampling_interval_seconds
    maxima = [m for m in rolling_max(series, window_seconds) if m is not None]
    return max(maxima) if maxima else None
