"""Wires the watch consumer, debounce scheduler and reconciler together."""

from __future__ import annotations

import signal
import threading
from typing import TYPE_CHECKING, Any

import structlog

from completion_operator.controller.artifacts import ErrorArtifactWriter
from completion_operator.controller.reconciler import Reconciler, ReconcileResult
from completion_operator.controller.scheduler import DebounceScheduler, TimerFactory
from completion_operator.controller.watcher import WatchConsumer

if TYPE_CHECKING:
    from completion_operator.core.config.models import ControllerConfig
    from completion_operator.integrations.completion.client import CompletionClient
    from completion_operator.models.completion import CompletionResource
    from completion_operator.services.kubernetes.completion_manager import (
        CompletionResourceManager,
    )

logger = structlog.get_logger()


class CompletionOperator:
    """The controller for Completion resources.

    Example:
        ```python
        operator = CompletionOperator(manager, completion_client, ControllerConfig())
        operator.run()  # blocks until stop() or a fatal watch error
        ```
    """

    def __init__(
        self,
        manager: CompletionResourceManager,
        completions: CompletionClient,
        config: ControllerConfig,
        *,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.config = config
        self.manager = manager
        self.reconciler = Reconciler(
            manager,
            completions,
            ErrorArtifactWriter(config.error_dir),
        )
        self.scheduler = DebounceScheduler(
            self._reconcile,
            delay=config.debounce_seconds,
            per_resource=config.per_resource_debounce,
            max_requeues=config.max_requeues,
            requeue_base_delay=config.requeue_base_delay,
            requeue_max_delay=config.requeue_max_delay,
            timer_factory=timer_factory,
        )
        self.watcher = WatchConsumer(
            manager,
            self.scheduler.schedule,
            max_retries=config.watch_max_retries,
            backoff_max=config.watch_backoff_max,
            timeout_seconds=config.watch_timeout_seconds,
        )
        self.last_result: ReconcileResult | None = None
        self._log = logger.bind(component="operator")

    def _reconcile(self, resource: CompletionResource) -> bool:
        result = self.reconciler.reconcile(resource)
        self.last_result = result
        return result.requeue

    def reconcile_now(self, resource: CompletionResource) -> ReconcileResult:
        """Run one reconcile pass immediately, bypassing the debounce window."""
        result = self.reconciler.reconcile(resource)
        self.last_result = result
        return result

    def run(self, *, install_signal_handlers: bool = False) -> None:
        """Watch and reconcile until stopped.

        Raises:
            KubernetesError: When the watch cannot be kept open.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        self._log.info(
            "operator_started",
            path=self.manager.api_path,
            debounce_seconds=self.config.debounce_seconds,
            per_resource_debounce=self.config.per_resource_debounce,
        )
        try:
            self.watcher.run()
        finally:
            self.scheduler.close()
            self._log.info("operator_stopped")

    def stop(self) -> None:
        """Stop watching and drop pending reconciles."""
        self.watcher.stop()
        self.scheduler.close()

    def _install_signal_handlers(self) -> None:
        def _handle(signum: int, _frame: Any) -> None:
            self._log.info("shutdown_signal_received", signal=signal.Signals(signum).name)
            self.stop()

        signal.signal(signal.SIGTERM, _handle)
        signal.signal(signal.SIGINT, _handle)
