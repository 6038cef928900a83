"""OpenAI chat-completions provider with JSON-schema structured output."""

from __future__ import annotations

import logging

import openai
from openai import OpenAI
from pydantic import ValidationError

from kariro.ai.base import AiNotConfiguredError, AiOutputError, AiProviderError, Prompt, ResultT

logger = logging.getLogger(__name__)


class OpenAiProvider:
    """Calls the OpenAI API once per request.

    SDK-level retries are disabled: the durable queue owns retry and backoff,
    so a transient failure surfaces as a retryable ``AiProviderError``.
    """

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: float,
        client: OpenAI | None = None,
    ) -> None:
        if client is None and not api_key:
            raise AiNotConfiguredError()
        self.model = model
        self._client = client or OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )

    def generate_text(self, prompt: Prompt) -> str:
        return self._complete(prompt, response_format=None)

    def generate_object(self, prompt: Prompt, schema: type[ResultT]) -> ResultT:
        content = self._complete(
            prompt,
            response_format={
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__,
                    "schema": schema.model_json_schema(),
                },
            },
        )
        try:
            return schema.model_validate_json(content)
        except ValidationError as error:
            logger.warning(
                "OpenAI output failed %s validation: %d errors",
                schema.__name__,
                error.error_count(),
            )
            raise AiOutputError(f"AI output failed {schema.__name__} validation") from error

    def _complete(self, prompt: Prompt, *, response_format: dict | None) -> str:
        kwargs: dict = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        if response_format is not None:
            kwargs["response_format"] = response_format

        try:
            completion = self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as error:
            raise AiProviderError("AI provider request timeout") from error
        except (
            openai.RateLimitError,
            openai.APIConnectionError,
            openai.InternalServerError,
        ) as error:
            raise AiProviderError(
                f"AI provider temporarily unavailable: {type(error).__name__}",
            ) from error
        except openai.APIStatusError as error:
            raise AiProviderError(
                f"AI provider rejected request: HTTP {error.status_code}",
                retryable=error.status_code >= 500,  # noqa: PLR2004
            ) from error

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise AiOutputError("AI provider returned an empty response")
        return content
