"""Debounced reconcile scheduling.

Bursts of watch events are coalesced: the first event for a debounce key
arms a timer, later events before it fires only replace the snapshot the
timer will hand to the reconcile callback. The timer is never pushed back,
so a continuous stream of events still gets a reconcile once per window.

By default every resource shares one key, giving at most one reconcile per
window process-wide. With ``per_resource=True`` each resource name gets its
own entry in the table.

A failed pass is requeued into the same table with exponential backoff.
A watch event that lands on a pending requeue replaces it with a normal
window and a fresh retry budget.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from completion_operator.models.completion import CompletionResource

logger = structlog.get_logger()

GLOBAL_KEY = "*"

# Returns True when the resource should be reconciled again after a backoff.
ReconcileCallback = Callable[["CompletionResource"], bool | None]


class TimerHandle(Protocol):
    """What the scheduler needs from a timer (threading.Timer satisfies it)."""

    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[..., TimerHandle]


@dataclass
class ReconcileTask:
    """A pending reconcile for one debounce key."""

    key: str
    resource: CompletionResource
    timer: TimerHandle | None = None
    pending: bool = True
    attempt: int = 0


class DebounceScheduler:
    """Coalesces reconcile requests into one callback per debounce window.

    The task table is guarded by ``_lock``; callbacks are serialized by
    ``_run_lock`` so at most one reconcile pass runs at a time.
    """

    def __init__(
        self,
        callback: ReconcileCallback,
        *,
        delay: float = 1.0,
        per_resource: bool = False,
        max_requeues: int = 5,
        requeue_base_delay: float = 1.0,
        requeue_max_delay: float = 60.0,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        """Initialize the scheduler.

        Args:
            callback: Reconcile function; a truthy return value requests a requeue.
            delay: Debounce window in seconds.
            per_resource: Debounce per resource name instead of process-wide.
            max_requeues: Requeue attempts before giving up on a failing resource.
            requeue_base_delay: Delay of the first requeue; doubles per attempt.
            requeue_max_delay: Upper bound of the requeue delay.
            timer_factory: Called as ``timer_factory(delay, fn, args=(key, task))``.
        """
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self._callback = callback
        self.delay = delay
        self.per_resource = per_resource
        self.max_requeues = max_requeues
        self.requeue_base_delay = requeue_base_delay
        self.requeue_max_delay = requeue_max_delay
        self._timer_factory = timer_factory

        self._tasks: dict[str, ReconcileTask] = {}
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._closed = False
        self._log = logger.bind(component="scheduler")

    def key_for(self, resource: CompletionResource) -> str:
        """Debounce key of ``resource``."""
        if self.per_resource:
            return resource.name
        return GLOBAL_KEY

    def requeue_delay(self, attempt: int) -> float:
        """Backoff before requeue number ``attempt`` (1-based)."""
        return float(min(self.requeue_base_delay * 2 ** (attempt - 1), self.requeue_max_delay))

    @property
    def pending(self) -> int:
        """Number of armed timers."""
        with self._lock:
            return len(self._tasks)

    def pending_keys(self) -> list[str]:
        """Keys that currently have an armed timer."""
        with self._lock:
            return list(self._tasks)

    def schedule(self, resource: CompletionResource) -> bool:
        """Request a reconcile of ``resource``.

        Returns:
            True if a new timer was armed, False if the request was folded
            into an already pending one (or the scheduler is closed).
        """
        return self._arm(resource, self.delay, attempt=0)

    def _arm(
        self,
        resource: CompletionResource,
        delay: float,
        *,
        attempt: int,
        replace: bool = True,
    ) -> bool:
        key = self.key_for(resource)
        with self._lock:
            if self._closed:
                self._log.debug("schedule_after_close", resource=resource.name)
                return False

            task = self._tasks.get(key)
            if task is not None and not (replace and task.attempt > 0):
                # A pending event snapshot is newer than a requeued one.
                if replace:
                    task.resource = resource
                self._log.debug("reconcile_coalesced", key=key, resource=resource.name)
                return False

            if task is not None:
                # A fresh event supersedes a requeue backoff: it gets the
                # normal window and a new retry budget.
                if task.timer is not None:
                    task.timer.cancel()
                self._log.debug(
                    "requeue_superseded",
                    key=key,
                    requeued=task.resource.name,
                    resource=resource.name,
                    attempt=task.attempt,
                )

            task = ReconcileTask(key=key, resource=resource, attempt=attempt)
            timer = self._timer_factory(delay, self._fire, args=(key, task))
            timer.daemon = True
            task.timer = timer
            self._tasks[key] = task
            timer.start()

        self._log.debug(
            "reconcile_scheduled",
            key=key,
            resource=resource.name,
            delay=delay,
            attempt=attempt,
        )
        return True

    def _fire(self, key: str, task: ReconcileTask) -> None:
        # Remove the task before running so events arriving during the
        # pass arm a fresh timer instead of being folded into a finished one.
        # A timer whose task was superseded finds another task in its slot.
        with self._lock:
            if self._tasks.get(key) is not task:
                return
            del self._tasks[key]
        task.pending = False

        with self._run_lock:
            if self._closed:
                return
            try:
                requeue = bool(self._callback(task.resource))
            except Exception:
                self._log.exception("reconcile_callback_failed", resource=task.resource.name)
                requeue = True

        if requeue:
            self._requeue(task)

    def _requeue(self, task: ReconcileTask) -> None:
        attempt = task.attempt + 1
        name = task.resource.name
        if attempt > self.max_requeues:
            self._log.error("reconcile_gave_up", resource=name, attempts=task.attempt)
            return

        delay = self.requeue_delay(attempt)
        if self._arm(task.resource, delay, attempt=attempt, replace=False):
            self._log.warning("reconcile_requeued", resource=name, attempt=attempt, delay=delay)

    def close(self) -> None:
        """Cancel every pending timer; later schedule calls are ignored."""
        with self._lock:
            self._closed = True
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            if task.timer is not None:
                task.timer.cancel()
        if tasks:
            self._log.info("scheduler_closed", dropped=len(tasks))

    def __enter__(self) -> DebounceScheduler:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
