"""Build the configured AI provider."""

from __future__ import annotations

from kariro.ai.base import AiNotConfiguredError, AiProvider
from kariro.ai.echo_provider import EchoProvider
from kariro.ai.openai_provider import OpenAiProvider
from kariro.config import AiSettings


def build_ai_provider(settings: AiSettings) -> AiProvider:
    """Return provider for ``settings.provider`` or raise when none is configured."""

    if settings.provider == "echo":
        return EchoProvider()
    if settings.provider == "openai":
        return OpenAiProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.request_timeout_seconds,
        )
    raise AiNotConfiguredError()
