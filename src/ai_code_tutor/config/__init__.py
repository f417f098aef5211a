"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    AnthropicConfig,
    GroqConfig,
    LLMConfig,
    LoggingConfig,
    RetryConfig,
    SandboxConfig,
    StorageConfig,
    TutorConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "TutorConfig",
    # Top-level configs
    "SandboxConfig",
    "LLMConfig",
    "StorageConfig",
    "LoggingConfig",
    "RetryConfig",
    # Provider-specific configs
    "GroqConfig",
    "AnthropicConfig",
]
