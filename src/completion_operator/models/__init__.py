"""Resource and event models."""

from completion_operator.models.completion import (
    COMPLETION_GROUP,
    COMPLETION_KIND,
    COMPLETION_PLURAL,
    COMPLETION_VERSION,
    DEFAULT_MAX_TOKENS,
    CompletionResource,
    CompletionSpec,
    CompletionStatus,
    EventPhase,
    ResourceMetadata,
    WatchEvent,
)

__all__ = [
    "COMPLETION_GROUP",
    "COMPLETION_KIND",
    "COMPLETION_PLURAL",
    "COMPLETION_VERSION",
    "DEFAULT_MAX_TOKENS",
    "CompletionResource",
    "CompletionSpec",
    "CompletionStatus",
    "EventPhase",
    "ResourceMetadata",
    "WatchEvent",
]
