"""Session owner: wires a ValidationSession to the clients and the worker.

Actions are queued on the ApiWorker and return a ticket. Results come back
through process_results() (or wait()), which applies each outcome to the
session on the caller's thread. Rejections that need no network call
(cooldowns, blocked submissions, disabled integrations) are returned
immediately as BusinessRuleError.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from dpwtool.client.dpw_api import DPWApiClient
from dpwtool.client.tasking_manager import TaskManagerClient
from dpwtool.config.settings import Settings
from dpwtool.models.common import UNKNOWN_ID
from dpwtool.models.outcome import BusinessRuleError, Failure, Outcome, Success
from dpwtool.models.records import TaskInfo, UpdateInfo, UserRecord
from dpwtool.models.submission import UploadRequest
from dpwtool.updates.checker import UpdateChecker
from dpwtool.workflow.cooldown import Cooldown, UserListCache
from dpwtool.workflow.session import ValidationSession, ValidationState
from dpwtool.workflow.worker import ApiWorker, CompletedCall

logger = logging.getLogger(__name__)

Handler = Callable[[Outcome[Any]], None]


class ValidationController:
    """Runs one validator's session against the remote backends."""

    def __init__(
        self,
        session: ValidationSession,
        dpw: DPWApiClient,
        *,
        task_manager: TaskManagerClient | None = None,
        updater: UpdateChecker | None = None,
        worker: ApiWorker | None = None,
        mapper_cooldown: Cooldown | None = None,
        user_cache: UserListCache | None = None,
        update_cooldown: Cooldown | None = None,
    ) -> None:
        self.session = session
        self._dpw = dpw
        self._task_manager = task_manager
        self._updater = updater
        self._worker = worker or ApiWorker()
        self._mapper_cooldown = mapper_cooldown or Cooldown(10.0)
        self._user_cache = user_cache or UserListCache(300.0)
        self._update_cooldown = update_cooldown or Cooldown(3600.0)
        self._handlers: dict[int, Handler] = {}
        self.update_info: UpdateInfo | None = None
        self.task_info: TaskInfo | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        validator_username: str = "",
        transport: httpx.BaseTransport | None = None,
    ) -> "ValidationController":
        """Build clients from settings.

        Raises:
            ConfigurationError: If a configured base URL is malformed.
        """
        task_manager = None
        if settings.TM_INTEGRATION_ENABLED:
            task_manager = TaskManagerClient.from_settings(settings, transport)
        return cls(
            ValidationSession(validator_username=validator_username),
            DPWApiClient.from_settings(settings, transport),
            task_manager=task_manager,
            updater=UpdateChecker.from_settings(settings, transport),
            mapper_cooldown=Cooldown(settings.MAPPER_FETCH_COOLDOWN_S),
            user_cache=UserListCache(settings.USER_CACHE_TTL_S),
            update_cooldown=Cooldown(settings.UPDATE_CHECK_COOLDOWN_S),
        )

    @property
    def pending(self) -> int:
        return len(self._handlers)

    def _enqueue(self, label: str, job: Callable[[], Outcome[Any]], handler: Handler) -> int:
        ticket = self._worker.submit(label, job)
        self._handlers[ticket] = handler
        return ticket

    # ----- Mapper list -----

    def refresh_users(self, *, force: bool = False) -> int | Outcome[list[UserRecord]]:
        """Queue a mapper-list fetch.

        Returns the ticket, or an immediate outcome: the cached list while it
        is fresh, or a BusinessRuleError during the refresh cooldown.

        Raises:
            ValueError: If the session is not IDLE or USERS_LOADED.
        """
        self.session.require_state(ValidationState.IDLE, ValidationState.USERS_LOADED)
        if not force:
            cached = self._user_cache.get()
            if cached is not None:
                logger.info("Using cached mapper list (%d users)", len(cached))
                outcome: Outcome[list[UserRecord]] = Success(cached)
                self.session.begin_user_refresh()
                self.session.apply_user_refresh(outcome)
                return outcome
        if not self._mapper_cooldown.ready():
            wait = self._mapper_cooldown.remaining()
            return BusinessRuleError(f"Please wait {wait:.0f} seconds before refreshing again")

        self.session.begin_user_refresh()
        self._mapper_cooldown.mark()
        return self._enqueue("fetch mappers", self._dpw.fetch_authorized_mappers, self._on_users)

    def _on_users(self, outcome: Outcome[list[UserRecord]]) -> None:
        if isinstance(outcome, Success):
            self._user_cache.put(outcome.payload)
        self.session.apply_user_refresh(outcome)

    # ----- Tasking Manager -----

    def lookup_task(self, tm_url: str) -> int | BusinessRuleError:
        """Queue a Tasking Manager lookup that fills task ID and mapper."""
        if self._task_manager is None:
            return BusinessRuleError("Tasking Manager integration is disabled")
        client = self._task_manager
        return self._enqueue(
            "fetch task", lambda: client.fetch_task_info_from_url(tm_url), self._on_task,
        )

    def _on_task(self, outcome: Outcome[TaskInfo]) -> None:
        if isinstance(outcome, Failure):
            self.session.last_message = outcome.describe()
            return
        info = outcome.payload
        self.task_info = info
        self.session.task_id = str(info.task_id)
        if info.mapper_username:
            self.session.mapper_username = info.mapper_username
        self.session.last_message = f"Task {info.task_id} mapped by {info.mapper_username}"

    # ----- Submission -----

    def submit(self) -> int | BusinessRuleError:
        """Queue the validation submission.

        Raises:
            ValueError: If the session is not ISOLATED.
        """
        self.session.require_state(ValidationState.ISOLATED)
        if not self.session.can_submit():
            rejection = BusinessRuleError("; ".join(self.session.missing_fields()))
            self.session.last_message = rejection.describe()
            return rejection
        try:
            self.session.normalize_fields()
            payload = self.session.build_payload()
        except ValueError as exc:
            rejection = BusinessRuleError(f"Invalid submission: {exc}")
            self.session.last_message = rejection.describe()
            return rejection

        dpw = self._dpw
        return self._enqueue(
            "submit validation", lambda: dpw.submit_validation(payload), self.session.apply_submission,
        )

    # ----- Upload -----

    def _user_id(self, username: str, known: int) -> Outcome[int]:
        if known > 0:
            return Success(known)
        return self._dpw.get_user_id(username)

    def upload(self, file_path: Path) -> int | BusinessRuleError:
        """Queue the cloud upload of the exported file.

        User IDs come from the loaded mapper list when present and are
        looked up otherwise, on the worker thread.
        """
        self.session.require_state(ValidationState.SUBMITTED)
        if not self.session.validator_username:
            return BusinessRuleError("Validator username is not set")

        request = self.session.upload_request(
            file_path, mapper_user_id=UNKNOWN_ID, validator_user_id=UNKNOWN_ID,
        )
        mapper = self.session.mapper_username
        validator = self.session.validator_username
        known = self.session.find_user(mapper)
        known_mapper_id = known.user_id if known is not None else UNKNOWN_ID

        def job() -> Outcome[str]:
            mapper_id = self._user_id(mapper, known_mapper_id)
            if isinstance(mapper_id, Failure):
                return mapper_id
            validator_id = self._dpw.get_user_id(validator)
            if isinstance(validator_id, Failure):
                return validator_id
            resolved: UploadRequest = request.model_copy(update={
                "mapper_user_id": mapper_id.payload,
                "validator_user_id": validator_id.payload,
            })
            return self._dpw.upload_to_cloud(resolved)

        return self._enqueue("upload file", job, self.session.apply_upload)

    def mark_exported(self) -> None:
        self.session.mark_exported()

    def reset(self) -> None:
        """Reset the session and drop every call still in flight."""
        for ticket in self._handlers:
            self._worker.abandon(ticket)
        self._handlers.clear()
        self.session.reset()

    # ----- Updates -----

    def check_updates(self, *, force: bool = False) -> int | BusinessRuleError:
        if self._updater is None:
            return BusinessRuleError("Update checks are not configured")
        if not force and not self._update_cooldown.ready():
            return BusinessRuleError("Update check already performed recently")
        self._update_cooldown.mark()
        return self._enqueue("check updates", self._updater.check_for_updates, self._on_update)

    def _on_update(self, outcome: Outcome[UpdateInfo]) -> None:
        if isinstance(outcome, Failure):
            self.session.last_message = outcome.describe()
            return
        self.update_info = outcome.payload

    def install_update(
        self,
        target_dir: Path,
        cancel: threading.Event | None = None,
    ) -> int | BusinessRuleError:
        """Queue the download of the last found update into ``target_dir``."""
        if self._updater is None or self.update_info is None:
            return BusinessRuleError("No update information; check for updates first")
        updater, info = self._updater, self.update_info
        return self._enqueue(
            "download update",
            lambda: updater.download_update(info, target_dir, cancel=cancel),
            self._on_install,
        )

    def _on_install(self, outcome: Outcome[Path]) -> None:
        if isinstance(outcome, Failure):
            self.session.last_message = outcome.describe()
        else:
            self.session.last_message = f"Update installed at {outcome.payload}. Restart to apply."

    # ----- Result delivery -----

    def abandon(self, ticket: int) -> None:
        """Drop the pending call; a pending refresh returns the session to its prior state."""
        handler = self._handlers.pop(ticket, None)
        if handler is None:
            return
        self._worker.abandon(ticket)
        if handler == self._on_users:
            self.session.apply_user_refresh(BusinessRuleError("Refresh cancelled"))

    def _dispatch(self, call: CompletedCall) -> bool:
        handler = self._handlers.pop(call.ticket, None)
        if handler is None:
            return False
        handler(call.outcome)
        return True

    def process_results(self) -> list[CompletedCall]:
        """Apply every result delivered so far; never blocks."""
        return [call for call in self._worker.drain_results() if self._dispatch(call)]

    def wait(self, timeout: float | None = None) -> CompletedCall | None:
        """Block for the next result and apply it."""
        while self._handlers:
            call = self._worker.wait_result(timeout)
            if call is None:
                return None
            if self._dispatch(call):
                return call
        return None

    def close(self) -> None:
        self._worker.shutdown()
