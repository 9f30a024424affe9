"""Background thread for remote calls.

The session is only ever touched by its owner. Remote calls run here, one at
a time, and each finished call is handed back as a CompletedCall on a result
queue that the owner drains. Abandoned tickets are dropped when their result
arrives.
"""

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dpwtool.models.outcome import Outcome, TransportError

logger = logging.getLogger(__name__)

Job = Callable[[], Outcome[Any]]


@dataclass(frozen=True)
class CompletedCall:
    ticket: int
    label: str
    outcome: Outcome[Any]


class ApiWorker:
    """Single daemon thread consuming a FIFO of remote-call jobs."""

    def __init__(self, name: str = "dpw-api") -> None:
        self._jobs: queue.Queue[tuple[int, str, Job] | None] = queue.Queue()
        self._results: queue.Queue[CompletedCall] = queue.Queue()
        self._lock = threading.Lock()
        self._next_ticket = 0
        self._abandoned: set[int] = set()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def submit(self, label: str, job: Job) -> int:
        """Queue ``job`` and return its ticket."""
        with self._lock:
            self._next_ticket += 1
            ticket = self._next_ticket
        self._jobs.put((ticket, label, job))
        logger.debug("Queued %s as ticket %d", label, ticket)
        return ticket

    def abandon(self, ticket: int) -> None:
        """Discard the result of ``ticket`` whenever it arrives."""
        with self._lock:
            self._abandoned.add(ticket)

    def _keep(self, ticket: int) -> bool:
        with self._lock:
            if ticket in self._abandoned:
                self._abandoned.discard(ticket)
                return False
            return True

    def _run(self) -> None:
        while True:
            item = self._jobs.get()
            if item is None:
                return
            ticket, label, job = item
            try:
                outcome = job()
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error in %s", label)
                outcome = TransportError(f"{type(exc).__name__}: {exc}")
            if self._keep(ticket):
                self._results.put(CompletedCall(ticket=ticket, label=label, outcome=outcome))
            else:
                logger.info("Dropped result of abandoned %s (ticket %d)", label, ticket)

    def drain_results(self) -> list[CompletedCall]:
        """All results delivered so far, without blocking."""
        done: list[CompletedCall] = []
        while True:
            try:
                call = self._results.get_nowait()
            except queue.Empty:
                return done
            if self._keep(call.ticket):
                done.append(call)

    def wait_result(self, timeout: float | None = None) -> CompletedCall | None:
        """Block for the next kept result, or None on timeout."""
        while True:
            try:
                call = self._results.get(timeout=timeout)
            except queue.Empty:
                return None
            if self._keep(call.ticket):
                return call

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop after the queued jobs finish."""
        self._jobs.put(None)
        self._thread.join(timeout)
