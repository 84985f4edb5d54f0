"""Metric computation routes."""
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from cyclemetrics.analysis.aggregation import overall_stats, summarize_weeks
from cyclemetrics.analysis.batch import compute_batch
from cyclemetrics.analysis.pipeline import compute_activity_metrics
from cyclemetrics.analysis.rider import RiderConfig
from cyclemetrics.analysis.series import InvalidStreamError
from cyclemetrics.api.deps import get_best_effort_durations, get_rider
from cyclemetrics.export.records import (
    activity_metrics_to_dict,
    export_activity_metrics,
    overall_stats_to_dict,
    weekly_summary_to_dict,
)
from cyclemetrics.ingest.strava import normalize_strava_activity

router = APIRouter()


class SummaryRequest(BaseModel):
    activities: List[Dict[str, Any]]


class RiderResponse(BaseModel):
    ftp_watts: float
    max_hr_bpm: int
    zone_boundaries: List[float]
    zone_thresholds_watts: List[float]
    best_effort_durations: List[int]


@router.get("/rider", response_model=RiderResponse)
def get_rider_config(
    rider: RiderConfig = Depends(get_rider),
    durations: Tuple[int, ...] = Depends(get_best_effort_durations),
):
    """The rider configuration metrics are computed against."""
    return RiderResponse(
        ftp_watts=rider.ftp_watts,
        max_hr_bpm=rider.max_hr_bpm,
        zone_boundaries=list(rider.zone_boundaries),
        zone_thresholds_watts=list(rider.zone_thresholds_watts()),
        best_effort_durations=list(durations),
    )


@router.post("/activity")
def activity_metrics(
    payload: Dict[str, Any],
    rider: RiderConfig = Depends(get_rider),
    durations: Tuple[int, ...] = Depends(get_best_effort_durations),
):
    """Compute metrics for one Strava-format activity (with streams)."""
    try:
        activity = normalize_strava_activity(payload)
    except InvalidStreamError:
        raise
    except KeyError as exc:
        raise HTTPException(status_code=422, detail=f"missing field: {exc}")
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return activity_metrics_to_dict(compute_activity_metrics(activity, rider, durations))


@router.post("/summary")
def metrics_summary(
    request: SummaryRequest,
    max_workers: Optional[int] = None,
    rider: RiderConfig = Depends(get_rider),
    durations: Tuple[int, ...] = Depends(get_best_effort_durations),
):
    """
    Per-activity metrics, weekly summaries and overall stats for a batch.

    Activities with broken streams are reported under "failures" and left out
    of the summaries; they never fail the request.
    """
    failures: Dict[str, str] = {}
    activities = []
    for raw in request.activities:
        try:
            activities.append(normalize_strava_activity(raw))
        except KeyError as exc:
            failures[str(raw.get("id", "?"))] = f"missing field: {exc}"
        except ValueError as exc:
            # InvalidStreamError, bad start date, non-numeric summary field
            failures[str(raw.get("id", "?"))] = str(exc)

    result = compute_batch(activities, rider, durations, max_workers=max_workers)
    failures.update(result.failures)

    return {
        "activities": export_activity_metrics(result.metrics),
        "weekly": [weekly_summary_to_dict(w) for w in summarize_weeks(result.metrics)],
        "overall": overall_stats_to_dict(overall_stats(result.metrics)),
        "failures": failures,
    }
