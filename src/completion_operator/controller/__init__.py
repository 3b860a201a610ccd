"""Reconciliation core: watch consumer, debounce scheduler and reconciler."""

from completion_operator.controller.artifacts import ErrorArtifactWriter
from completion_operator.controller.operator import CompletionOperator
from completion_operator.controller.reconciler import (
    PROMPT_PREFIX,
    Reconciler,
    ReconcileResult,
    ReconcileState,
    build_prompt,
)
from completion_operator.controller.scheduler import DebounceScheduler, ReconcileTask
from completion_operator.controller.watcher import WatchConsumer

__all__ = [
    "PROMPT_PREFIX",
    "CompletionOperator",
    "DebounceScheduler",
    "ErrorArtifactWriter",
    "ReconcileResult",
    "ReconcileState",
    "ReconcileTask",
    "Reconciler",
    "WatchConsumer",
    "build_prompt",
]
