"""Concrete implementations of provider interfaces."""

from .llm.anthropic import AnthropicAdapter
from .llm.groq import GroqAdapter
from .sandbox.piston import PistonAdapter
from .storage.file import JsonFileStore
from .storage.memory import MemoryStore

__all__ = [
    "AnthropicAdapter",
    "GroqAdapter",
    "JsonFileStore",
    "MemoryStore",
    "PistonAdapter",
]
