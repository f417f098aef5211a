"""Utility functions and helpers.

This module provides various utilities for the tutor engine:
- async_helpers: Exception hierarchy, retry, timeouts, cancellation
- logging: Structured logging with secret sanitization
- metrics: In-process counters and histograms
- security: Secret redaction, service URL validation
"""

from ai_code_tutor.utils.async_helpers import (
    CancellationToken,
    ForeignLanguageError,
    LLMResponseError,
    LLMServiceError,
    RateLimitError,
    RunSupersededError,
    SandboxError,
    SandboxTimeoutError,
    ServiceError,
    StorageError,
    TutorError,
    retry_transient,
    with_timeout,
)
from ai_code_tutor.utils.logging import (
    LogFormat,
    LogLevel,
    configure_from_config,
    configure_logging,
)
from ai_code_tutor.utils.metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from ai_code_tutor.utils.security import (
    RedactionError,
    SecretPattern,
    SecretRedactor,
    SecurityError,
    redact_outbound,
)

__all__ = [
    "CancellationToken",
    "Counter",
    "ForeignLanguageError",
    "Histogram",
    "LLMResponseError",
    "LLMServiceError",
    "LogFormat",
    "LogLevel",
    "MetricsRegistry",
    "RateLimitError",
    "RedactionError",
    "RunSupersededError",
    "SandboxError",
    "SandboxTimeoutError",
    "SecretPattern",
    "SecretRedactor",
    "SecurityError",
    "ServiceError",
    "StorageError",
    "Timer",
    "TutorError",
    "configure_from_config",
    "configure_logging",
    "get_metrics",
    "redact_outbound",
    "retry_transient",
    "with_timeout",
]
