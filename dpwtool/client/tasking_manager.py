"""HOT Tasking Manager client: task lookup and mapper detection."""

import logging

import httpx

from dpwtool.client.base import classify_raw, log_failure, require_base_url
from dpwtool.client.http import Endpoint, HttpRequester
from dpwtool.config.settings import Settings
from dpwtool.data.parsers.task_refs import parse_task_manager_url
from dpwtool.data.parsers.tasks import parse_task_info
from dpwtool.models.outcome import BusinessRuleError, Failure, Outcome, Success
from dpwtool.models.records import TaskInfo

logger = logging.getLogger(__name__)

INVALID_URL_MESSAGE = "Invalid Task Manager URL. Please include task ID."


class TaskManagerClient:
    """Stateless client for ``GET {tm_base}/projects/{P}/tasks/{T}/``."""

    def __init__(self, base_url: str, requester: HttpRequester) -> None:
        self._base_url = require_base_url(base_url, "TM_API_BASE_URL")
        self._requester = requester

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
    ) -> "TaskManagerClient":
        requester = HttpRequester(
            user_agent=settings.user_agent,
            timeouts=settings.json_timeouts,
            rate_limit_low_water=settings.RATE_LIMIT_LOW_WATER,
            transport=transport,
        )
        return cls(settings.TM_API_BASE_URL, requester)

    def fetch_task_info(self, project_id: int, task_id: int) -> Outcome[TaskInfo]:
        """Task status and the username of whoever mapped it."""
        if project_id <= 0 or task_id <= 0:
            return BusinessRuleError(f"Invalid project/task: {project_id}/{task_id}")

        endpoint = Endpoint(self._base_url, f"/projects/{project_id}/tasks/{task_id}/")
        logger.info("Fetching TM task info: %s", endpoint.url)

        outcome = classify_raw(self._requester.get(endpoint))
        if isinstance(outcome, Failure):
            log_failure(f"Fetch TM task {project_id}/{task_id}", outcome)
            return outcome

        parsed = parse_task_info(outcome.payload, project_id, task_id)
        if isinstance(parsed, Success):
            logger.info("Found mapper %s for task %d", parsed.payload.mapper_username, task_id)
        else:
            logger.warning("Task %d/%d: %s", project_id, task_id, parsed.message)
        return parsed

    def fetch_task_info_from_url(self, tm_url: str) -> Outcome[TaskInfo]:
        """Resolve a pasted Tasking Manager URL; the task ID is required."""
        ref = parse_task_manager_url(tm_url)
        if ref is None or ref.task_id is None:
            return BusinessRuleError(INVALID_URL_MESSAGE)
        return self.fetch_task_info(ref.project_id, ref.task_id)
