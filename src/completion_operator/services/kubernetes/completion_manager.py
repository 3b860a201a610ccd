"""Manager for Completion custom resources.

Reads, replaces and watches ``completions.copilot.poc.com`` objects through
the CustomObjectsApi. The resource is cluster scoped.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from completion_operator.models.completion import (
    COMPLETION_GROUP,
    COMPLETION_KIND,
    COMPLETION_PLURAL,
    COMPLETION_VERSION,
    CompletionResource,
)
from completion_operator.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from kubernetes.watch import Watch

    from completion_operator.integrations.kubernetes.client import KubernetesClient


class CompletionResourceManager(K8sBaseManager):
    """Manager for Completion custom resources."""

    _entity_name = "completion"
    _resource_kind = COMPLETION_KIND

    def __init__(
        self,
        client: KubernetesClient,
        *,
        group: str = COMPLETION_GROUP,
        version: str = COMPLETION_VERSION,
        plural: str = COMPLETION_PLURAL,
        status_subresource: bool = False,
    ) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
            group: API group of the resource.
            version: API version of the resource.
            plural: Plural resource name.
            status_subresource: Write status through the ``/status``
                subresource instead of replacing the whole object.
        """
        super().__init__(client, group=group, version=version, plural=plural)
        self.status_subresource = status_subresource

    # =========================================================================
    # Read
    # =========================================================================

    def list_completions(self) -> list[CompletionResource]:
        """List all Completion objects.

        Objects that do not decode (missing metadata.name) are skipped.
        """
        self._log.debug("listing_completions", path=self.api_path)
        result: dict[str, Any] = self._call_api("list_cluster_custom_object")

        items: list[CompletionResource] = []
        for item in result.get("items", []):
            try:
                items.append(CompletionResource.from_api_object(item))
            except ValueError as e:
                self._log.warning("skipping_undecodable_completion", error=str(e))
        return items

    def get_completion(self, name: str) -> CompletionResource:
        """Get a single Completion by name.

        Raises:
            KubernetesNotFoundError: If the object does not exist.
        """
        self._log.debug("getting_completion", name=name)
        result: dict[str, Any] = self._call_api(
            "get_cluster_custom_object", name, resource_name=name
        )
        return CompletionResource.from_api_object(result)

    # =========================================================================
    # Write
    # =========================================================================

    def replace_completion(self, resource: CompletionResource) -> CompletionResource:
        """Persist the full object.

        The body carries ``metadata.resourceVersion`` as it was read, so the
        API server rejects the write with 409 if the object changed since.
        Transient connection errors are retried.

        Raises:
            KubernetesConflictError: The object was modified concurrently.
            KubernetesError: Any other API failure.
        """
        body = resource.to_api_body()
        name = resource.name

        method = (
            "replace_cluster_custom_object_status"
            if self.status_subresource
            else "replace_cluster_custom_object"
        )

        @self._client.make_retry_decorator()
        def _replace() -> dict[str, Any]:
            result: dict[str, Any] = self._call_api(method, name, body, resource_name=name)
            return result

        self._log.debug(
            "replacing_completion",
            name=name,
            resource_version=resource.metadata.resource_version,
            status_subresource=self.status_subresource,
        )
        result = _replace()
        self._log.info("replaced_completion", name=name)
        return CompletionResource.from_api_object(result)

    # =========================================================================
    # Watch
    # =========================================================================

    def new_watch(self) -> Watch:
        """Create a single-use watch handle."""
        return self._client.new_watch()

    def watch_completions(
        self,
        watcher: Watch,
        *,
        resource_version: str | None = None,
        timeout_seconds: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Stream raw watch events for the collection.

        The iterator ends when the server closes the stream; errors are
        raised as KubernetesError subclasses.
        """
        kwargs: dict[str, Any] = {}
        if resource_version:
            kwargs["resource_version"] = resource_version
        if timeout_seconds is not None:
            kwargs["timeout_seconds"] = timeout_seconds

        self._log.debug("opening_watch", path=self.api_path, **kwargs)
        return self._client.stream(
            watcher,
            self._client.custom_objects.list_cluster_custom_object,
            self.group,
            self.version,
            self.plural,
            **kwargs,
        )
