"""
Compute metrics for many activities on a worker pool.

Each activity runs its own pipeline against the shared, read-only RiderConfig,
so there is nothing to lock. One activity failing (InvalidStreamError, or any
other error, logged with its traceback) is recorded in BatchResult.failures
and never stops the rest.

Submission is bounded (at most 2 * max_workers activities in flight). When a
deadline is given, activities not yet submitted by then are listed in
not_submitted; work already running is allowed to finish.
"""
import logging
import time
from concurrent.futures import FIRST_COMPLETED, Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from cyclemetrics.analysis.pipeline import ActivityInput, ActivityMetrics, compute_activity_metrics
from cyclemetrics.analysis.power import (
    DEFAULT_BEST_EFFORT_DURATIONS,
    check_best_effort_durations,
)
from cyclemetrics.analysis.rider import RiderConfig
from cyclemetrics.analysis.series import InvalidStreamError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class BatchResult:
    metrics: List[ActivityMetrics] = field(default_factory=list)  # input order
    failures: Dict[str, str] = field(default_factory=dict)        # activity_id -> error
    not_submitted: List[str] = field(default_factory=list)        # cut off by the deadline


def compute_batch(
    activities: Iterable[ActivityInput],
    rider: RiderConfig,
    best_effort_durations: Iterable[int] = DEFAULT_BEST_EFFORT_DURATIONS,
    max_workers: Optional[int] = None,
    deadline: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
    executor_factory: Callable[[int], Executor] = ThreadPoolExecutor,
) -> BatchResult:
    """
    Run compute_activity_metrics for every activity.

    Args:
        activities: Activities to process.
        rider: Rider configuration, validated once before any work starts.
        best_effort_durations: Best-effort windows in seconds.
        max_workers: Pool size (defaults to DEFAULT_MAX_WORKERS).
        deadline: Value of clock() after which no further activity is submitted.
        clock: Monotonic clock used for the deadline check.
        executor_factory: Builds the executor; ProcessPoolExecutor also works.

    Raises:
        ConfigurationError: invalid rider configuration or best-effort durations.
    """
    rider.validate()
    durations = check_best_effort_durations(best_effort_durations)
    workers = max_workers or DEFAULT_MAX_WORKERS
    pending = list(activities)
    # keyed by input position so repeated activity ids keep their own records
    done_metrics: Dict[int, ActivityMetrics] = {}
    result = BatchResult()

    def collect(future: Future, index: int) -> None:
        activity_id = pending[index].activity_id
        try:
            done_metrics[index] = future.result()
        except InvalidStreamError as exc:
            logger.warning("Skipping activity %s: %s", activity_id, exc)
            result.failures[activity_id] = str(exc)
        except Exception as exc:
            logger.exception("Metrics failed for activity %s", activity_id)
            result.failures[activity_id] = f"{type(exc).__name__}: {exc}"

    with executor_factory(workers) as executor:
        in_flight: Dict[Future, int] = {}
        queue = iter(enumerate(pending))
        for index, activity in queue:
            if deadline is not None and clock() >= deadline:
                result.not_submitted = [activity.activity_id] + [a.activity_id for _, a in queue]
                logger.info(
                    "Deadline reached; %d activities not submitted", len(result.not_submitted)
                )
                break

            while len(in_flight) >= 2 * workers:
                finished, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in finished:
                    collect(future, in_flight.pop(future))

            future = executor.submit(compute_activity_metrics, activity, rider, durations)
            in_flight[future] = index

        for future in list(in_flight):
            collect(future, in_flight.pop(future))

    result.metrics = [done_metrics[i] for i in sorted(done_metrics)]
    logger.info(
        "Computed metrics for %d activities (%d failed, %d not submitted)",
        len(result.metrics), len(result.failures), len(result.not_submitted),
    )
    return result
