"""Unit tests for the reconcile pass."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from completion_operator.controller.artifacts import ErrorArtifactWriter
from completion_operator.controller.reconciler import (
    PROMPT_PREFIX,
    Reconciler,
    ReconcileState,
    build_prompt,
)
from completion_operator.integrations.completion.exceptions import (
    CompletionAPIError,
    CompletionAuthError,
    CompletionConnectionError,
    CompletionResponseError,
)
from completion_operator.integrations.completion.models import (
    CompletionChoice,
    CompletionResult,
)
from completion_operator.integrations.kubernetes.exceptions import (
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesValidationError,
)
from completion_operator.models.completion import CompletionResource

ResourceFactory = Callable[..., CompletionResource]


def _result(text: str) -> CompletionResult:
    return CompletionResult(
        id="cmpl-1",
        model="davinci-codex",
        choices=[CompletionChoice(text=text)],
    )


@pytest.fixture
def mock_manager() -> MagicMock:
    """Manager double that echoes the replaced object back."""
    manager = MagicMock()
    manager.status_subresource = False
    manager.replace_completion.side_effect = lambda resource: resource
    return manager


@pytest.fixture
def mock_completions() -> MagicMock:
    """Completion client double returning a fixed text."""
    completions = MagicMock()
    completions.complete.return_value = _result("apiVersion: v1\nkind: Pod\n")
    return completions


@pytest.fixture
def artifacts(tmp_path: Path) -> ErrorArtifactWriter:
    """Artifact writer into a temporary directory."""
    return ErrorArtifactWriter(tmp_path)


@pytest.fixture
def reconciler(
    mock_manager: MagicMock,
    mock_completions: MagicMock,
    artifacts: ErrorArtifactWriter,
) -> Reconciler:
    """Reconciler wired to the doubles."""
    return Reconciler(mock_manager, mock_completions, artifacts)


@pytest.mark.unit
class TestBuildPrompt:
    """Tests for build_prompt."""

    def test_prefixes_instruction_header(self) -> None:
        """The user prompt follows the fixed header verbatim."""
        assert build_prompt("kind: Pod\n") == PROMPT_PREFIX + "kind: Pod\n"

    def test_header_ends_with_newline(self) -> None:
        """The header is a full line of its own."""
        assert PROMPT_PREFIX.startswith("# Below is a series of YAML files")
        assert PROMPT_PREFIX.endswith("\n")


@pytest.mark.unit
class TestReconcileFirstSight:
    """A Completion that has never been reconciled."""

    def test_fills_completion_and_observed_generation(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """A new object gets the completion and generation + 1 in one write."""
        resource = make_resource("x", generation=1, user_prompt="kind: Pod\n")

        result = reconciler.reconcile(resource)

        assert result.state is ReconcileState.CONVERGED
        assert result.converged is True
        assert result.transitions == [
            ReconcileState.NEEDS_INIT,
            ReconcileState.NEEDS_RECONCILE,
            ReconcileState.RECONCILING,
            ReconcileState.CONVERGED,
        ]
        mock_completions.complete.assert_called_once_with(PROMPT_PREFIX + "kind: Pod\n", 64)
        mock_manager.replace_completion.assert_called_once()
        written = mock_manager.replace_completion.call_args.args[0]
        assert written.status is not None
        assert written.status.completion == "apiVersion: v1\nkind: Pod\n"
        assert written.status.observed_generation == 2

    def test_does_not_mutate_input(
        self,
        reconciler: Reconciler,
        make_resource: ResourceFactory,
    ) -> None:
        """The watched snapshot is left untouched."""
        resource = make_resource("x")

        reconciler.reconcile(resource)

        assert resource.status is None

    def test_passes_explicit_max_tokens(
        self,
        reconciler: Reconciler,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """maxTokens from the spec is the token budget."""
        reconciler.reconcile(make_resource("x", max_tokens=200))

        assert mock_completions.complete.call_args.args[1] == 200

    def test_missing_generation_counts_as_one(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """An object without metadata.generation is treated as generation 1."""
        reconciler.reconcile(make_resource("x", generation=None))

        written = mock_manager.replace_completion.call_args.args[0]
        assert written.status.observed_generation == 2

    def test_write_carries_resource_version(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """The replace body is conditioned on the version that was read."""
        reconciler.reconcile(make_resource("x", resource_version="4711"))

        written = mock_manager.replace_completion.call_args.args[0]
        assert written.to_api_body()["metadata"]["resourceVersion"] == "4711"
        assert written.to_api_body()["metadata"]["uid"] == "uid-x"


@pytest.mark.unit
class TestReconcileUpdates:
    """A Completion whose spec changed after an earlier reconcile."""

    def test_spec_edit_is_reconciled(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """Generation 3 with observed 2 triggers a provider call."""
        mock_completions.complete.return_value = _result("kind: Service\n")
        resource = make_resource(
            "x",
            generation=3,
            user_prompt="kind: Service\n",
            status={"completion": "old", "observedGeneration": 2},
        )

        result = reconciler.reconcile(resource)

        assert result.state is ReconcileState.CONVERGED
        assert result.transitions == [
            ReconcileState.NEEDS_RECONCILE,
            ReconcileState.RECONCILING,
            ReconcileState.CONVERGED,
        ]
        written = mock_manager.replace_completion.call_args.args[0]
        assert written.status.completion == "kind: Service\n"
        assert written.status.observed_generation == 4

    def test_converged_object_makes_no_calls(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """The echo of our own write is a no-op."""
        resource = make_resource(
            "x",
            generation=2,
            status={"completion": "kind: Pod\n", "observedGeneration": 2},
        )

        result = reconciler.reconcile(resource)

        assert result.state is ReconcileState.CONVERGED
        assert result.transitions == [ReconcileState.CONVERGED]
        assert result.requeue is False
        mock_completions.complete.assert_not_called()
        mock_manager.replace_completion.assert_not_called()

    def test_second_pass_on_persisted_object_is_noop(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """Reconciling the object the server stored after our write does nothing."""
        first = reconciler.reconcile(make_resource("x", generation=1))
        assert first.resource is not None
        # The server bumps generation on a full replace.
        stored = first.resource.model_copy(deep=True)
        stored.metadata.generation = 2

        second = reconciler.reconcile(stored)

        assert second.transitions == [ReconcileState.CONVERGED]
        assert mock_completions.complete.call_count == 1
        assert mock_manager.replace_completion.call_count == 1

    def test_status_subresource_keeps_generation(
        self,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        artifacts: ErrorArtifactWriter,
        make_resource: ResourceFactory,
    ) -> None:
        """A status write does not bump generation, so observed equals it."""
        mock_manager.status_subresource = True
        reconciler = Reconciler(mock_manager, mock_completions, artifacts)

        reconciler.reconcile(make_resource("x", generation=5, status={"observedGeneration": 4}))

        written = mock_manager.replace_completion.call_args.args[0]
        assert written.status.observed_generation == 5


@pytest.mark.unit
class TestReconcileInvalidSpec:
    """Specs that fail validation never reach the provider."""

    @pytest.mark.parametrize(
        "spec",
        [
            {},
            {"userPrompt": 42},
            {"userPrompt": "kind: Pod\n", "maxTokens": "64"},
            {"userPrompt": "kind: Pod\n", "maxTokens": 0},
            {"userPrompt": "kind: Pod\n", "maxTokens": -5},
        ],
    )
    def test_invalid_spec_short_circuits(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
        spec: dict[str, Any],
    ) -> None:
        """A bad spec ends Invalid without provider call or write."""
        result = reconciler.reconcile(make_resource("x", spec=spec))

        assert result.state is ReconcileState.INVALID
        assert result.requeue is False
        assert result.error is not None
        mock_completions.complete.assert_not_called()
        mock_manager.replace_completion.assert_not_called()

    def test_absent_spec_is_invalid(
        self,
        reconciler: Reconciler,
        mock_completions: MagicMock,
    ) -> None:
        """An object without spec is Invalid."""
        resource = CompletionResource.from_api_object({"metadata": {"name": "x", "generation": 1}})

        result = reconciler.reconcile(resource)

        assert result.state is ReconcileState.INVALID
        mock_completions.complete.assert_not_called()


@pytest.mark.unit
class TestReconcileFailures:
    """Provider and persist failures."""

    @pytest.mark.parametrize(
        ("error", "requeue"),
        [
            (CompletionConnectionError("timed out"), True),
            (CompletionAPIError("server error", status_code=500), True),
            (CompletionResponseError("no choices"), True),
            (CompletionAuthError("bad key"), False),
        ],
    )
    def test_provider_failure_leaves_object_unchanged(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
        tmp_path: Path,
        error: Exception,
        requeue: bool,
    ) -> None:
        """No write happens and an error artifact is dumped."""
        mock_completions.complete.side_effect = error

        result = reconciler.reconcile(make_resource("x"))

        assert result.state is ReconcileState.FAILED
        assert result.error is error
        assert result.requeue is requeue
        assert result.transitions[-2:] == [ReconcileState.RECONCILING, ReconcileState.FAILED]
        mock_manager.replace_completion.assert_not_called()
        artifact = json.loads((tmp_path / "x.json").read_text())
        assert artifact["resource"] == "x"
        assert artifact["phase"] == "completion"
        assert artifact["error_type"] == type(error).__name__

    def test_conflict_is_stale(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        make_resource: ResourceFactory,
        tmp_path: Path,
    ) -> None:
        """A 409 on replace discards the result without requeue."""
        mock_manager.replace_completion.side_effect = KubernetesConflictError(
            resource_type="Completion", resource_name="x"
        )

        result = reconciler.reconcile(make_resource("x"))

        assert result.state is ReconcileState.STALE
        assert result.requeue is False
        artifact = json.loads((tmp_path / "x.json").read_text())
        assert artifact["phase"] == "persist"
        assert artifact["status_code"] == 409

    def test_persist_connection_error_requeues(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """A transient persist failure asks for a requeue."""
        mock_manager.replace_completion.side_effect = KubernetesConnectionError("refused")

        result = reconciler.reconcile(make_resource("x"))

        assert result.state is ReconcileState.FAILED
        assert result.requeue is True

    def test_persist_validation_error_not_requeued(
        self,
        reconciler: Reconciler,
        mock_manager: MagicMock,
        make_resource: ResourceFactory,
    ) -> None:
        """A rejected body would be rejected again."""
        mock_manager.replace_completion.side_effect = KubernetesValidationError("bad body")

        result = reconciler.reconcile(make_resource("x"))

        assert result.state is ReconcileState.FAILED
        assert result.requeue is False

    def test_artifact_write_failure_does_not_raise(
        self,
        mock_manager: MagicMock,
        mock_completions: MagicMock,
        make_resource: ResourceFactory,
        tmp_path: Path,
    ) -> None:
        """An unwritable artifact directory does not break the pass."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = ErrorArtifactWriter(blocker / "sub")
        reconciler = Reconciler(mock_manager, mock_completions, writer)
        mock_completions.complete.side_effect = CompletionConnectionError("down")

        result = reconciler.reconcile(make_resource("x"))

        assert result.state is ReconcileState.FAILED
