"""Models for the Completion custom resource and its watch events."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

COMPLETION_GROUP = "copilot.poc.com"
COMPLETION_VERSION = "v1"
COMPLETION_PLURAL = "completions"
COMPLETION_KIND = "Completion"

DEFAULT_MAX_TOKENS = 64


class ResourceMetadata(BaseModel):
    """Subset of ObjectMeta the controller reads.

    Unknown keys (uid, labels, managedFields, ...) are kept so the object
    can be written back unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    generation: int | None = None
    resource_version: str | None = Field(default=None, alias="resourceVersion")


class CompletionSpec(BaseModel):
    """Validated desired state of a Completion."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_prompt: str = Field(..., alias="userPrompt", strict=True)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, alias="maxTokens", strict=True, gt=0)


class CompletionStatus(BaseModel):
    """Observed state of a Completion."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    completion: str = ""
    observed_generation: int | None = Field(default=None, alias="observedGeneration")


class CompletionResource(BaseModel):
    """A Completion object as delivered by the API server.

    ``spec`` is kept as the raw mapping; it is validated into a
    CompletionSpec by the reconcile pass so that a bad spec is reported
    there instead of dropping the whole event.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(
        default=f"{COMPLETION_GROUP}/{COMPLETION_VERSION}", alias="apiVersion"
    )
    kind: str = COMPLETION_KIND
    metadata: ResourceMetadata
    spec: dict[str, Any] | None = None
    status: CompletionStatus | None = None

    @property
    def name(self) -> str:
        """Resource name."""
        return self.metadata.name

    @property
    def generation(self) -> int:
        """Current generation; an object without one counts as generation 1."""
        if self.metadata.generation is None:
            return 1
        return self.metadata.generation

    @property
    def is_converged(self) -> bool:
        """Whether the status reflects the current generation."""
        if self.status is None:
            return False
        return self.status.observed_generation == self.generation

    def parse_spec(self) -> CompletionSpec:
        """Validate the raw spec.

        Raises:
            pydantic.ValidationError: If userPrompt is missing or not a string,
                or maxTokens is not a positive integer.
            ValueError: If the spec is absent.
        """
        if self.spec is None:
            raise ValueError("resource has no spec")
        return CompletionSpec.model_validate(self.spec)

    def to_api_body(self) -> dict[str, Any]:
        """Serialize the full object for a replace call."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_api_object(cls, data: dict[str, Any]) -> CompletionResource:
        """Create from an API server object (as returned by CustomObjectsApi)."""
        return cls.model_validate(data)


class EventPhase(str, Enum):
    """Watch event types."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_raw(cls, value: Any) -> EventPhase:
        """Map a raw watch event type; anything unrecognised is UNKNOWN."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


class WatchEvent(BaseModel):
    """A decoded watch event."""

    phase: EventPhase
    resource: CompletionResource | None = None
    raw_type: str = ""
    decode_error: str | None = None

    @property
    def triggers_reconcile(self) -> bool:
        """ADDED and MODIFIED events with a decodable object schedule a reconcile."""
        return self.resource is not None and self.phase in (
            EventPhase.ADDED,
            EventPhase.MODIFIED,
        )

    @classmethod
    def from_raw(cls, event: dict[str, Any]) -> WatchEvent:
        """Decode a raw ``{"type": ..., "object": ...}`` watch event."""
        raw_type = str(event.get("type", ""))
        phase = EventPhase.from_raw(raw_type)
        obj = event.get("object")

        if not isinstance(obj, dict):
            return cls(
                phase=phase,
                raw_type=raw_type,
                decode_error=f"unexpected object type {type(obj).__name__}",
            )

        try:
            resource = CompletionResource.from_api_object(obj)
        except ValidationError as e:
            return cls(phase=phase, raw_type=raw_type, decode_error=str(e))

        return cls(phase=phase, resource=resource, raw_type=raw_type)
