"""Watch stream consumer.

Keeps a watch on the Completion collection open for the life of the
process. A stream that ends normally is re-opened at once from the last
seen resourceVersion. A stream that fails is re-opened with exponential
backoff and jitter; after ``max_retries`` consecutive streams fail without
delivering an event the error is raised to the caller. A stream that
breaks after delivering events is re-opened at once with a fresh budget.
Authorization failures are raised immediately.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from completion_operator.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesGoneError,
)
from completion_operator.models.completion import EventPhase, WatchEvent

if TYPE_CHECKING:
    from kubernetes.watch import Watch

    from completion_operator.models.completion import CompletionResource
    from completion_operator.services.kubernetes.completion_manager import (
        CompletionResourceManager,
    )

logger = structlog.get_logger()


class WatchConsumer:
    """Consumes the Completion watch stream and forwards changes.

    ADDED and MODIFIED events hand the decoded resource to ``on_change``;
    DELETED and unknown events are only logged.
    """

    def __init__(
        self,
        manager: CompletionResourceManager,
        on_change: Callable[[CompletionResource], Any],
        *,
        max_retries: int = 10,
        backoff_max: float = 30.0,
        timeout_seconds: int | None = 300,
    ) -> None:
        """Initialize the consumer.

        Args:
            manager: Source of the watch stream.
            on_change: Called with the resource of every ADDED/MODIFIED event.
            max_retries: Consecutive failed stream attempts before giving up.
            backoff_max: Upper bound of the reconnect delay in seconds.
            timeout_seconds: Server-side watch timeout; the stream is re-opened
                when it expires.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._manager = manager
        self._on_change = on_change
        self.max_retries = max_retries
        self.backoff_max = backoff_max
        self.timeout_seconds = timeout_seconds

        self.resource_version: str | None = None
        self.streams_opened = 0
        self._stop = threading.Event()
        self._active_watch: Watch | None = None
        self._watch_lock = threading.Lock()
        self._log = logger.bind(component="watcher", path=manager.api_path)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def stopped(self) -> bool:
        """Whether a stop was requested."""
        return self._stop.is_set()

    def stop(self) -> None:
        """Request a cooperative stop and interrupt the open stream."""
        self._stop.set()
        with self._watch_lock:
            active = self._active_watch
        if active is not None:
            active.stop()

    def run(self) -> None:
        """Watch until ``stop()`` is called.

        Raises:
            KubernetesAuthError: The API server denied the watch.
            KubernetesError: ``max_retries`` streams in a row failed before
                delivering an event.
        """
        self._log.info("watch_started")
        while not self._stop.is_set():
            for attempt in self._retrying():
                with attempt:
                    self._consume_stream()
        self._log.info("watch_stopped")

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=(
                retry_if_exception_type(KubernetesError)
                & retry_if_not_exception_type(KubernetesAuthError)
            ),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_random_exponential(multiplier=0.5, max=self.backoff_max),
            sleep=self._stop.wait,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._log.warning(
            "watch_reconnecting",
            attempt=retry_state.attempt_number,
            max_retries=self.max_retries,
            delay=round(delay, 2),
            error=str(error),
        )

    # =========================================================================
    # Stream handling
    # =========================================================================

    def _consume_stream(self) -> None:
        if self._stop.is_set():
            return

        watcher = self._manager.new_watch()
        with self._watch_lock:
            self._active_watch = watcher
        self.streams_opened += 1
        self._log.debug(
            "watch_stream_opened",
            resource_version=self.resource_version,
            streams_opened=self.streams_opened,
        )

        delivered = 0
        try:
            stream = self._manager.watch_completions(
                watcher,
                resource_version=self.resource_version,
                timeout_seconds=self.timeout_seconds,
            )
            for raw in stream:
                if self._stop.is_set():
                    break
                self.handle_raw_event(raw)
                delivered += 1
        except KubernetesGoneError:
            self._log.info("watch_resource_version_expired", resource_version=self.resource_version)
            self.resource_version = None
            return
        except KubernetesAuthError:
            raise
        except KubernetesError as e:
            if not delivered:
                raise
            # A stream that delivered events counts as a successful connect;
            # the retry budget only covers streams that fail before any event.
            self._log.warning("watch_stream_interrupted", events=delivered, error=str(e))
            return
        finally:
            with self._watch_lock:
                self._active_watch = None
            watcher.stop()

        self._log.info("watch_stream_closed", resource_version=self.resource_version)

    def handle_raw_event(self, raw: dict[str, Any]) -> WatchEvent:
        """Decode and dispatch one raw watch event.

        Raises:
            KubernetesGoneError: For an ERROR event with code 410.
            KubernetesError: For any other ERROR event.
        """
        if raw.get("type") == "ERROR":
            self._raise_stream_error(raw)

        event = WatchEvent.from_raw(raw)
        if event.resource is not None and event.resource.metadata.resource_version:
            self.resource_version = event.resource.metadata.resource_version
        self.dispatch(event)
        return event

    @staticmethod
    def _raise_stream_error(raw: dict[str, Any]) -> None:
        status = raw.get("raw_object") or raw.get("object") or {}
        if not isinstance(status, dict):
            status = {}
        code = status.get("code")
        message = status.get("message") or "watch stream reported an error"
        if code == 410:
            raise KubernetesGoneError(message)
        if code in (401, 403):
            raise KubernetesAuthError(message, status_code=code)
        raise KubernetesConnectionError(f"{message} (code: {code})")

    def dispatch(self, event: WatchEvent) -> None:
        """Route a decoded event by phase."""
        resource = event.resource
        name = resource.name if resource is not None else None
        self._log.debug("watch_event", phase=event.phase.value, resource=name)

        if resource is not None and event.triggers_reconcile:
            self._on_change(resource)
        elif event.phase in (EventPhase.ADDED, EventPhase.MODIFIED):
            self._log.warning(
                "undecodable_watch_object",
                phase=event.phase.value,
                error=event.decode_error,
            )
        elif event.phase is EventPhase.DELETED:
            self._log.info("resource_deleted", resource=name)
        else:
            self._log.warning("unknown_watch_event", event_type=event.raw_type, resource=name)
