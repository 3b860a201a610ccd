"""Reconcile pass for a single Completion.

A pass walks ``NeedsInit -> NeedsReconcile -> Reconciling -> Converged``
on a private copy of the watched object. The copy only reaches the API
server through one replace call; if the provider or the replace fails the
copy is dropped and the stored object is left as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from completion_operator.integrations.completion.exceptions import CompletionAuthError
from completion_operator.integrations.kubernetes.exceptions import (
    KubernetesConflictError,
    KubernetesValidationError,
)
from completion_operator.models.completion import CompletionResource, CompletionStatus

if TYPE_CHECKING:
    from completion_operator.controller.artifacts import ErrorArtifactWriter
    from completion_operator.integrations.completion.client import CompletionClient
    from completion_operator.services.kubernetes.completion_manager import (
        CompletionResourceManager,
    )

logger = structlog.get_logger()

PROMPT_PREFIX = (
    "# Below is a series of YAML files used to create resources in a Kubernetes cluster\n"
)


def build_prompt(user_prompt: str) -> str:
    """Prefix the user's prompt with the fixed instruction header."""
    return PROMPT_PREFIX + user_prompt


class ReconcileState(str, Enum):
    """States and outcomes of a reconcile pass."""

    NEEDS_INIT = "NeedsInit"
    NEEDS_RECONCILE = "NeedsReconcile"
    RECONCILING = "Reconciling"
    CONVERGED = "Converged"
    INVALID = "Invalid"
    FAILED = "Failed"
    STALE = "Stale"


@dataclass
class ReconcileResult:
    """Outcome of one reconcile pass."""

    name: str
    state: ReconcileState
    transitions: list[ReconcileState] = field(default_factory=list)
    requeue: bool = False
    resource: CompletionResource | None = None
    error: Exception | None = None

    @property
    def converged(self) -> bool:
        """Whether the pass ended converged."""
        return self.state is ReconcileState.CONVERGED


class Reconciler:
    """Drives one Completion toward convergence.

    Args:
        manager: Reads and writes Completion objects.
        completions: Completion provider client.
        artifacts: Writer for per-resource error dumps.
    """

    def __init__(
        self,
        manager: CompletionResourceManager,
        completions: CompletionClient,
        artifacts: ErrorArtifactWriter,
    ) -> None:
        self._manager = manager
        self._completions = completions
        self._artifacts = artifacts
        self._log = logger.bind(component="reconciler")

    def _next_observed_generation(self, generation: int) -> int:
        # A full-object replace bumps metadata.generation by one, a write to
        # the status subresource does not.
        if self._manager.status_subresource:
            return generation
        return generation + 1

    def reconcile(self, resource: CompletionResource) -> ReconcileResult:
        """Run one reconcile pass.

        Never raises for provider, persist or validation failures; those are
        reported through the result's state and ``error``.

        Args:
            resource: Snapshot delivered by the watch. Not mutated.

        Returns:
            The outcome of the pass.
        """
        name = resource.name
        log = self._log.bind(resource=name, generation=resource.metadata.generation)
        working = resource.model_copy(deep=True)
        transitions: list[ReconcileState] = []

        def result(
            state: ReconcileState,
            *,
            requeue: bool = False,
            error: Exception | None = None,
            persisted: CompletionResource | None = None,
        ) -> ReconcileResult:
            transitions.append(state)
            log.debug("reconcile_finished", state=state.value, requeue=requeue)
            return ReconcileResult(
                name=name,
                state=state,
                transitions=transitions,
                requeue=requeue,
                resource=persisted,
                error=error,
            )

        if working.status is None:
            transitions.append(ReconcileState.NEEDS_INIT)
            working.status = CompletionStatus(
                completion="",
                observed_generation=working.generation,
            )
            log.info("status_initialized", observed_generation=working.generation)
        elif working.is_converged:
            log.debug("already_converged", observed_generation=working.status.observed_generation)
            return result(ReconcileState.CONVERGED)

        transitions.append(ReconcileState.NEEDS_RECONCILE)

        # The generation is read together with the spec; the observed
        # generation written below is derived from this value only.
        generation = working.generation
        try:
            spec = working.parse_spec()
        except ValueError as e:
            log.error("invalid_spec", error=str(e))
            return result(ReconcileState.INVALID, error=e)

        transitions.append(ReconcileState.RECONCILING)
        log.info("reconciling", max_tokens=spec.max_tokens)

        try:
            completion = self._completions.complete(
                build_prompt(spec.user_prompt),
                spec.max_tokens,
            )
        except Exception as e:
            log.error("completion_failed", error=str(e), error_type=type(e).__name__)
            self._artifacts.write(name, e, phase="completion")
            return result(
                ReconcileState.FAILED,
                error=e,
                requeue=not isinstance(e, CompletionAuthError),
            )

        working.status = CompletionStatus(
            completion=completion.text,
            observed_generation=self._next_observed_generation(generation),
        )

        try:
            persisted = self._manager.replace_completion(working)
        except KubernetesConflictError as e:
            log.warning("stale_write_rejected", error=str(e))
            self._artifacts.write(name, e, phase="persist")
            return result(ReconcileState.STALE, error=e)
        except Exception as e:
            log.error("persist_failed", error=str(e), error_type=type(e).__name__)
            self._artifacts.write(name, e, phase="persist")
            return result(
                ReconcileState.FAILED,
                error=e,
                requeue=not isinstance(e, KubernetesValidationError),
            )

        log.info(
            "reconciled",
            observed_generation=working.status.observed_generation,
            completion_chars=len(completion.text),
        )
        return result(ReconcileState.CONVERGED, persisted=persisted)
