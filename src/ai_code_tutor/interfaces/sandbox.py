"""Abstract interface for remote code execution services."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class SandboxRequest:
    """One compile-and-run request in the sandbox wire format."""

    language: str
    version: str
    file_name: str
    content: str
    stdin: str = ""


@dataclass(frozen=True)
class StageResult:
    """Outcome of one sandbox stage (compile or run)."""

    output: str
    code: int | None
    stderr: str = ""


@dataclass(frozen=True)
class SandboxResponse:
    """Sandbox reply. ``compile`` is absent for interpreted languages."""

    run: StageResult | None
    compile: StageResult | None = None


class SandboxProvider(Protocol):
    """Abstract interface for remote execution services.

    Implementations own their HTTP client lifecycle and must release it on
    every exit path, including cancellation.
    """

    async def execute(self, request: SandboxRequest) -> SandboxResponse:
        """
        Compile and run source remotely.

        Args:
            request: Source, language and stdin to execute

        Returns:
            Per-stage outputs and exit codes

        Raises:
            SandboxTimeoutError: If the wall-clock limit is exceeded
            SandboxError: On non-2xx responses, transport errors or
                malformed replies
        """
        ...

    @property
    def timeout(self) -> float:
        """Wall-clock limit in seconds applied to each request."""
        ...
