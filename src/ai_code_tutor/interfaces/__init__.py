"""Protocol definitions for pluggable adapters."""

from .llm import ChatMessage, LLMProvider
from .sandbox import SandboxProvider, SandboxRequest, SandboxResponse, StageResult
from .storage import KeyValueStore

__all__ = [
    "ChatMessage",
    "KeyValueStore",
    "LLMProvider",
    "SandboxProvider",
    "SandboxRequest",
    "SandboxResponse",
    "StageResult",
]
