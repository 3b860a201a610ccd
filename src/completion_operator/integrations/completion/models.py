"""Completion API request and response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# Stops generation at the end of a YAML document or a comment block
DEFAULT_STOP_SEQUENCES: tuple[str, ...] = ("#\n#\n", "\n\n---\n\n", "\n\n")


class CompletionRequest(BaseModel):
    """Body of a completion request."""

    prompt: str = Field(..., description="Full prompt sent to the engine")
    max_tokens: int = Field(..., gt=0, description="Token budget for the completion")
    stop: list[str] = Field(default_factory=lambda: list(DEFAULT_STOP_SEQUENCES))
    temperature: float = 0.12
    top_p: float = 1
    frequency_penalty: float = 0
    presence_penalty: float = 0


class CompletionChoice(BaseModel):
    """One generated alternative."""

    text: str = ""
    index: int = 0
    finish_reason: str | None = None


class CompletionResult(BaseModel):
    """Parsed completion response."""

    id: str | None = None
    model: str | None = None
    choices: list[CompletionChoice] = Field(..., min_length=1)

    @property
    def text(self) -> str:
        """Text of the first choice."""
        return self.choices[0].text

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> CompletionResult:
        """Create from a completion API response.

        Args:
            data: Decoded JSON body.

        Returns:
            CompletionResult instance.
        """
        return cls(
            id=data.get("id"),
            model=data.get("model"),
            choices=[CompletionChoice.model_validate(c) for c in data["choices"]],
        )
