"""Groq model gateway adapter.

Groq exposes an OpenAI-compatible chat completions endpoint. JSON mode is
requested with ``response_format={"type": "json_object"}``.

Security features:
- Secret redaction of every message BEFORE it leaves the process (fail-closed)
- Response length limits enforced
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ...config.schema import GroqConfig, RetryConfig
from ...interfaces.llm import ChatMessage
from ...utils.async_helpers import (
    LLMResponseError,
    LLMServiceError,
    RateLimitError,
    TimeoutError,
    retry_transient,
)
from ...utils.logging import LogEventNames
from ...utils.security import SecretRedactor, redact_outbound
from .parsing import MAX_RESPONSE_LENGTH, parse_json_object, retry_after_seconds

log = structlog.get_logger()


class GroqAdapter:
    """Groq adapter implementing the LLMProvider protocol.

    A fresh ``httpx.AsyncClient`` is opened per request so nothing leaks
    when a run is cancelled mid-flight.

    Example:
        adapter = GroqAdapter(GroqConfig(api_key="gsk_..."))
        data = await adapter.complete(messages)
    """

    def __init__(
        self,
        config: GroqConfig,
        retry_config: RetryConfig | None = None,
        redactor: SecretRedactor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Groq adapter.

        Args:
            config: Groq-specific configuration.
            retry_config: Retry policy for transport errors. Defaults apply if None.
            redactor: Secret redactor. If None, creates default.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self._config = config
        self._redactor = redactor or SecretRedactor()
        self._transport = transport
        self._post = retry_transient(retry_config or RetryConfig())(self._post_once)

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        return self._config.model

    def _redact_text(self, text: str) -> str:
        """Redact secrets from text, failing closed on error."""
        return redact_outbound(self._redactor, text)

    async def _post_once(self, payload: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._config.timeout,
            transport=self._transport,
        ) as client:
            return await client.post(
                self._config.base_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._config.api_key}"},
            )

    async def complete(
        self,
        messages: list[ChatMessage],
        json_mode: bool = True,
    ) -> dict[str, Any] | str:
        """Send a chat completion request.

        Args:
            messages: Role-tagged messages (will be redacted).
            json_mode: Request and parse a JSON object response.

        Returns:
            Parsed JSON object in JSON mode, otherwise the raw text.

        Raises:
            LLMServiceError: On non-2xx responses or transport errors.
            LLMResponseError: If the body is malformed.
            RateLimitError: If rate limit exceeded.
            TimeoutError: If request times out.
            SecurityError: If redaction fails.
        """
        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": [
                {"role": m["role"], "content": self._redact_text(m["content"])}
                for m in messages
            ],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        log.debug(LogEventNames.LLM_REQUEST_START, provider="groq", model=self._config.model)

        try:
            response = await self._post(payload)
        except httpx.TimeoutException as e:
            log.error("groq_timeout", error=str(e))
            raise TimeoutError(f"Groq request timed out: {e}") from e
        except httpx.HTTPError as e:
            log.error(LogEventNames.LLM_REQUEST_ERROR, provider="groq", error=str(e))
            raise LLMServiceError(f"Groq transport error: {e}") from e

        if response.status_code == 429:
            retry_after = retry_after_seconds(response.headers)
            log.warning("groq_rate_limit", retry_after=retry_after)
            raise RateLimitError("Groq rate limit exceeded", retry_after=retry_after)
        if response.status_code >= 400:
            log.error(
                LogEventNames.LLM_REQUEST_ERROR,
                provider="groq",
                status=response.status_code,
            )
            raise LLMServiceError(
                f"Groq API error {response.status_code}: {response.text[:200]}"
            )

        try:
            text = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError(f"Unexpected Groq response shape: {e}") from e
        if not isinstance(text, str):
            raise LLMResponseError("Groq response content is not text")

        log.debug(LogEventNames.LLM_REQUEST_COMPLETE, provider="groq", length=len(text))

        if json_mode:
            return parse_json_object(text)
        if len(text) > MAX_RESPONSE_LENGTH:
            raise LLMResponseError(f"Response exceeds maximum length: {len(text)}")
        return text
