"""Anthropic Claude model gateway adapter.

This module implements the LLMProvider protocol for Anthropic's Claude models.

Security features:
- Secret redaction BEFORE all API calls (fail-closed)
- Structured prompts with clear system/user boundaries
- Output length limits enforced
"""

from __future__ import annotations

from typing import Any

import anthropic
import structlog

from ...config.schema import AnthropicConfig, RetryConfig
from ...interfaces.llm import ChatMessage
from ...utils.async_helpers import LLMServiceError, RateLimitError, TimeoutError
from ...utils.logging import LogEventNames
from ...utils.security import SecretRedactor, redact_outbound
from .parsing import MAX_RESPONSE_LENGTH, parse_json_object, retry_after_seconds

log = structlog.get_logger()

JSON_ONLY_SUFFIX = "\n\nRespond with a single JSON object and no other text."


class AnthropicAdapter:
    """Anthropic adapter implementing the LLMProvider protocol.

    The Messages API takes the system prompt separately, so system messages
    are pulled out of the conversation and joined.

    Example:
        config = AnthropicConfig(api_key="sk-ant-...")
        adapter = AnthropicAdapter(config)

        data = await adapter.complete(messages)
    """

    def __init__(
        self,
        config: AnthropicConfig,
        retry_config: RetryConfig | None = None,
        redactor: SecretRedactor | None = None,
    ) -> None:
        """Initialize the Anthropic adapter.

        Args:
            config: Anthropic-specific configuration.
            retry_config: Retry policy, handed to the SDK's built-in retries.
            redactor: Secret redactor. If None, creates default.
        """
        self._config = config
        self._redactor = redactor or SecretRedactor()
        retry_config = retry_config or RetryConfig()
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=retry_config.max_attempts - 1,
        )

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        return self._config.model

    def _redact_text(self, text: str) -> str:
        return redact_outbound(self._redactor, text)

    async def complete(
        self,
        messages: list[ChatMessage],
        json_mode: bool = True,
    ) -> dict[str, Any] | str:
        """Send a chat completion request.

        Args:
            messages: Role-tagged messages (will be redacted).
            json_mode: Ask for, and parse, a JSON object response.

        Returns:
            Parsed JSON object in JSON mode, otherwise the raw text.

        Raises:
            LLMServiceError: If the API returns an error.
            LLMResponseError: If the response is malformed.
            RateLimitError: If rate limit exceeded.
            TimeoutError: If request times out.
            SecurityError: If redaction fails.
        """
        system_parts = [self._redact_text(m["content"]) for m in messages if m["role"] == "system"]
        conversation = [
            {"role": m["role"], "content": self._redact_text(m["content"])}
            for m in messages
            if m["role"] != "system"
        ]
        system_prompt = "\n\n".join(system_parts)
        if json_mode:
            system_prompt += JSON_ONLY_SUFFIX

        log.debug(LogEventNames.LLM_REQUEST_START, provider="anthropic", model=self._config.model)

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=system_prompt,
                messages=conversation,
            )
        except anthropic.RateLimitError as e:
            retry_after = retry_after_seconds(e.response.headers)
            log.warning("anthropic_rate_limit", retry_after=retry_after, error=str(e))
            raise RateLimitError(
                f"Anthropic rate limit exceeded: {e}", retry_after=retry_after
            ) from e
        except anthropic.APITimeoutError as e:
            log.error("anthropic_timeout", error=str(e))
            raise TimeoutError(f"Anthropic request timed out: {e}") from e
        except anthropic.APIError as e:
            log.error("anthropic_api_error", error=str(e))
            raise LLMServiceError(f"Anthropic API error: {e}") from e

        response_text = "".join(block.text for block in response.content if block.type == "text")

        log.debug(
            LogEventNames.LLM_REQUEST_COMPLETE,
            provider="anthropic",
            length=len(response_text),
        )

        if json_mode:
            return parse_json_object(response_text)
        return response_text[:MAX_RESPONSE_LENGTH]
