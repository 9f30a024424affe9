"""Command-line entry point.

Usage:
    python -m dpwtool mappers
    python -m dpwtool task https://tasks.hotosm.org/projects/123/tasks/45
    python -m dpwtool check-update

Exit status: 0 on success, 1 when the remote call fails, 2 for bad
configuration.
"""

import argparse
import sys

from dpwtool.client.base import ConfigurationError
from dpwtool.client.dpw_api import DPWApiClient
from dpwtool.client.tasking_manager import TaskManagerClient
from dpwtool.config.settings import Settings, get_settings
from dpwtool.models.outcome import Failure, Outcome
from dpwtool.observability.logging import configure_logging
from dpwtool.updates.checker import UpdateChecker


def _report_failure(outcome: Outcome[object]) -> int:
    if isinstance(outcome, Failure):
        print(f"FAIL | {outcome.describe()}", file=sys.stderr)
        return 1
    return 0


def _mappers(settings: Settings, args: argparse.Namespace) -> int:
    outcome = DPWApiClient.from_settings(settings).fetch_authorized_mappers()
    if isinstance(outcome, Failure):
        return _report_failure(outcome)
    for user in outcome.payload:
        settlement = f" ({user.settlement})" if user.settlement else ""
        print(f"{user.osm_username}{settlement}")
    print(f"\n--- {len(outcome.payload)} authorized mappers ---")
    return 0


def _task(settings: Settings, args: argparse.Namespace) -> int:
    outcome = TaskManagerClient.from_settings(settings).fetch_task_info_from_url(args.url)
    if isinstance(outcome, Failure):
        return _report_failure(outcome)
    info = outcome.payload
    print(f"Project {info.project_id} task {info.task_id}: {info.status}")
    print(f"Mapper: {info.mapper_username}")
    return 0


def _check_update(settings: Settings, args: argparse.Namespace) -> int:
    outcome = UpdateChecker.from_settings(settings).check_for_updates()
    if isinstance(outcome, Failure):
        return _report_failure(outcome)
    info = outcome.payload
    if info.update_available:
        print(f"Update available: {info.current_version} -> {info.latest_version}")
        print(f"Download: {info.download_url or settings.RELEASES_PAGE_URL}")
    else:
        print(f"Up to date ({info.current_version})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dpwtool",
        description="DPW validation tool API checks",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("mappers", help="List authorized mappers").set_defaults(run=_mappers)
    task = commands.add_parser("task", help="Look up a Tasking Manager task")
    task.add_argument("url", help="Tasking Manager task URL")
    task.set_defaults(run=_task)
    commands.add_parser("check-update", help="Check for a newer release").set_defaults(run=_check_update)
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    try:
        return args.run(settings, args)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
