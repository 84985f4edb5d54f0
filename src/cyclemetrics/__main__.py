"""
Command-line entrypoint.

Usage:
    python -m cyclemetrics compute [DATA_DIR]            # per-activity metrics as JSON
    python -m cyclemetrics compute DATA_DIR --weekly     # weekly summaries + overall stats
    python -m cyclemetrics compute DATA_DIR --ftp 265    # override FTP for this run
    python -m cyclemetrics serve --port 8000             # HTTP API under uvicorn

DATA_DIR holds one Strava activity-with-streams JSON file per activity.
"""
import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cyclemetrics")
    sub = parser.add_subparsers(dest="command", required=True)

    compute = sub.add_parser("compute", help="compute metrics for a directory of activities")
    compute.add_argument("data_dir", nargs="?", default=None)
    compute.add_argument("--weekly", action="store_true", help="print weekly summaries")
    compute.add_argument("--ftp", type=float, default=None, help="override FTP (watts)")
    compute.add_argument("--workers", type=int, default=None)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def _run_compute(args: argparse.Namespace) -> int:
    from cyclemetrics.analysis.aggregation import overall_stats, summarize_weeks
    from cyclemetrics.analysis.batch import compute_batch
    from cyclemetrics.analysis.rider import ConfigurationError
    from cyclemetrics.config import (
        best_effort_durations_from_settings,
        get_settings,
        rider_from_settings,
    )
    from cyclemetrics.export.records import (
        export_activity_metrics,
        overall_stats_to_dict,
        weekly_summary_to_dict,
    )
    from cyclemetrics.ingest.strava import load_activity_dir

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    try:
        rider = rider_from_settings(settings)
        if args.ftp is not None:
            rider = replace(rider, ftp_watts=args.ftp).validate()
        durations = best_effort_durations_from_settings(settings)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    data_dir = args.data_dir or settings.data_dir
    failures = {}
    try:
        activities = load_activity_dir(data_dir, failures)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return 1

    result = compute_batch(
        activities,
        rider,
        durations,
        max_workers=args.workers or settings.max_workers,
    )
    failures.update(result.failures)

    if args.weekly:
        output = {
            "weekly": [weekly_summary_to_dict(w) for w in summarize_weeks(result.metrics)],
            "overall": overall_stats_to_dict(overall_stats(result.metrics)),
            "failures": failures,
        }
    else:
        output = {
            "activities": export_activity_metrics(result.metrics),
            "failures": failures,
        }
    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("cyclemetrics.api.main:app", host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "serve":
        return _run_serve(args)
    return _run_compute(args)


if __name__ == "__main__":
    sys.exit(main())
