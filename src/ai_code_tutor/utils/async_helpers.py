"""Async utility functions for resilient service calls.

This module provides:
- Custom exceptions separating recoverable service failures from caller errors
- A retry decorator for transient transport failures
- A timeout wrapper raising tutor errors
- The cancellation token checked between tiers

Tiers of the execution chain treat any ``ServiceError`` as a recoverable
failure and hand over to the next tier.
"""

from __future__ import annotations

import asyncio
import builtins
from collections.abc import Awaitable, Callable
from typing import ParamSpec, Protocol, TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class TutorError(Exception):
    """Base exception for all tutor engine errors."""


class ServiceError(TutorError):
    """An external collaborator was unavailable or answered badly.

    Always recoverable from the point of view of the tier chain.
    """


class SandboxError(ServiceError):
    """The remote execution service failed (non-2xx or transport error)."""


class SandboxTimeoutError(SandboxError):
    """The remote execution exceeded its wall-clock limit."""


class LLMServiceError(ServiceError):
    """The model gateway returned an error."""


class LLMResponseError(ServiceError):
    """The model response could not be parsed or failed validation."""


class RateLimitError(LLMServiceError):
    """Rate limit exceeded.

    Attributes:
        retry_after: Number of seconds to wait before retrying, if known.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TimeoutError(ServiceError):
    """Operation timed out."""


class StorageError(TutorError):
    """Persisting state to the key-value store failed."""


class ForeignLanguageError(TutorError):
    """The request concerns source that is not in the target language."""

    def __init__(self, language: str) -> None:
        super().__init__(f"Source was detected as {language}, not Java")
        self.language = language


class RunSupersededError(TutorError):
    """A newer run request abandoned this one before it finished."""


# =============================================================================
# Retries
# =============================================================================

# Failures worth another attempt: the request may never have reached the service
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (httpx.TimeoutException, httpx.NetworkError)


class RetryPolicy(Protocol):
    """Backoff settings; ``config.schema.RetryConfig`` satisfies this."""

    max_attempts: int
    initial_delay: float
    max_delay: float


def _before_sleep(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "retrying_transient_error",
        function=getattr(retry_state.fn, "__qualname__", None),
        attempt=retry_state.attempt_number,
        error_type=type(exception).__name__,
        error=str(exception),
        sleep=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def retry_transient(
    policy: RetryPolicy,
    retry_on: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Build a decorator retrying ``retry_on`` failures with exponential backoff.

    ``policy.max_attempts`` counts the first call, so 1 disables retrying.
    The last failure is re-raised unchanged.
    """
    return retry(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(min=policy.initial_delay, max=policy.max_delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_before_sleep,
        reraise=True,
    )


# =============================================================================
# Timeouts and cancellation
# =============================================================================


async def with_timeout(
    aw: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
    error_type: type[TutorError] = TimeoutError,
) -> T:
    """Await ``aw`` for at most ``timeout`` seconds.

    On expiry the awaitable is cancelled and ``error_type`` is raised.
    """
    try:
        async with asyncio.timeout(timeout):
            return await aw
    except builtins.TimeoutError as e:
        log.warning("operation_timeout", timeout=timeout, error_type=error_type.__name__)
        raise error_type(error_message or f"Operation timed out after {timeout:g}s") from e


class CancellationToken:
    """Flag an orchestrator run checks between tiers.

    Setting it never interrupts anything by itself; the run notices at its next
    checkpoint and unwinds with ``asyncio.CancelledError``.
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError("Run was superseded")
