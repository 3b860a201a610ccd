"""Base manager for cluster-scoped custom resources.

Holds the API coordinates of one custom resource collection and runs
CustomObjectsApi calls with Kubernetes errors translated into the
operator's exception hierarchy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

import structlog

if TYPE_CHECKING:
    from completion_operator.integrations.kubernetes.client import KubernetesClient

logger = structlog.get_logger()


class K8sBaseManager:
    """Base class for managers of one custom resource collection.

    Subclasses set ``_entity_name`` for log context and ``_resource_kind``
    for error messages.

    Example:
        >>> class CompletionResourceManager(K8sBaseManager):
        ...     _entity_name = "completion"
        ...     _resource_kind = "Completion"
    """

    _entity_name: str = ""
    _resource_kind: str | None = None

    def __init__(self, client: KubernetesClient, *, group: str, version: str, plural: str) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
            group: API group of the resource.
            version: API version of the resource.
            plural: Plural resource name.
        """
        self._client = client
        self.group = group
        self.version = version
        self.plural = plural
        self._log = logger.bind(entity=self._entity_name)

    @property
    def client(self) -> KubernetesClient:
        """The underlying Kubernetes client."""
        return self._client

    @property
    def api_path(self) -> str:
        """Collection path, e.g. ``/apis/copilot.poc.com/v1/completions``."""
        return f"/apis/{self.group}/{self.version}/{self.plural}"

    def _call_api(self, method: str, *args: Any, resource_name: str | None = None) -> Any:
        """Call a cluster-scoped CustomObjectsApi method on this collection.

        ``group``, ``version`` and ``plural`` are passed first; ``args``
        follow (the object name, then the body for writes). The client's
        request timeout applies to every call.

        Raises:
            KubernetesError: The translated API failure.
        """
        api_method = getattr(self._client.custom_objects, method)
        try:
            return api_method(
                self.group,
                self.version,
                self.plural,
                *args,
                _request_timeout=self._client.timeout,
            )
        except Exception as e:
            self._handle_api_error(e, self._resource_kind, resource_name)

    def _handle_api_error(
        self,
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
    ) -> NoReturn:
        """Translate a Kubernetes API exception and re-raise.

        Raises:
            KubernetesError: Always raises an appropriate subclass.
        """
        raise self._client.translate_api_exception(
            e,
            resource_type=resource_type,
            resource_name=resource_name,
        ) from e
