"""Abstract interface for model gateway integrations."""

from typing import Any, Literal, Protocol, TypedDict


class ChatMessage(TypedDict):
    """A role-tagged message sent to the model gateway."""

    role: Literal["system", "user", "assistant"]
    content: str


class LLMProvider(Protocol):
    """Abstract interface for model gateway integrations.

    This protocol defines the contract that all model adapters (Groq,
    Anthropic, ...) must implement. The engine sends role-tagged messages
    and receives either parsed JSON or plain text.
    """

    async def complete(
        self,
        messages: list[ChatMessage],
        json_mode: bool = True,
    ) -> dict[str, Any] | str:
        """
        Send a chat completion request.

        Security: Message content MUST be redacted using SecretRedactor
        before leaving the process. Adapters do this themselves.

        Args:
            messages: Role-tagged messages, system message first
            json_mode: When True the response is parsed as a JSON object
                (markdown code fences are stripped first)

        Returns:
            The parsed JSON object in JSON mode, otherwise the raw text

        Raises:
            LLMServiceError: If the gateway returns an error
            LLMResponseError: If JSON mode is on and the body is not a JSON object
            RateLimitError: If rate limit exceeded
            TimeoutError: If request times out
        """
        ...

    @property
    def model_name(self) -> str:
        """
        Return the model identifier being used.

        Examples:
            - "llama-3.3-70b-versatile"
            - "claude-3-5-sonnet-20241022"
        """
        ...
