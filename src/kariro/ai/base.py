"""AI provider protocol and provider-level errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar

from pydantic import BaseModel

ResultT = TypeVar("ResultT", bound=BaseModel)

NOT_CONFIGURED_MESSAGE = "No AI provider configured. Set OPENAI_API_KEY or KARIRO_AI_PROVIDER=echo."


class AiProviderError(RuntimeError):
    """Provider call failed; ``retryable`` tells the queue whether to try again."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class AiNotConfiguredError(AiProviderError):
    def __init__(self, message: str = NOT_CONFIGURED_MESSAGE) -> None:
        super().__init__(message, retryable=False)


class AiOutputError(AiProviderError):
    """Model answered, but the answer does not satisfy the requested schema."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


@dataclass(slots=True, frozen=True)
class Prompt:
    """System instruction plus user message carrying delimited untrusted content."""

    system: str
    user: str


class AiProvider(Protocol):
    """Protocol implemented by AI providers."""

    name: str

    def generate_text(self, prompt: Prompt) -> str:
        """Return free-form text for the prompt."""

    def generate_object(self, prompt: Prompt, schema: type[ResultT]) -> ResultT:
        """Return a schema-validated structured object for the prompt."""
