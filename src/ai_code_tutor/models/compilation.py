"""Data models for a single compile-and-run request."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import StrEnum

from .diagnostic import Diagnostic
from .source import SourceDocument


class Classification(StrEnum):
    """Outcome class of a run."""

    SUCCESS = "success"
    ERROR = "error"
    FOREIGN_LANGUAGE = "foreign-language"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class RunRequest:
    """Input handed to every execution tier."""

    source: SourceDocument
    stdin: tuple[str, ...] = ()

    @property
    def stdin_text(self) -> str:
        """Stdin values joined one per line, the way a terminal would feed them."""
        return "\n".join(self.stdin)


@dataclass(frozen=True)
class CompilationResult:
    """Produced exactly once per run request."""

    output_text: str
    exit_code: int
    classification: Classification
    diagnostics: tuple[Diagnostic, ...] = ()
    detected_foreign_language: str | None = None
    tier: str = ""

    @property
    def is_foreign_language(self) -> bool:
        return self.classification == Classification.FOREIGN_LANGUAGE

    @property
    def is_definitive_error(self) -> bool:
        """A correctly formed negative verdict from a real or simulated compiler."""
        return self.classification == Classification.ERROR

    def with_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> CompilationResult:
        """Return a copy carrying ``diagnostics`` instead of the current ones."""
        return replace(self, diagnostics=tuple(diagnostics))


@dataclass(frozen=True)
class TierFailure:
    """Recoverable failure of one execution tier.

    Returned rather than raised so the orchestrator can iterate tiers without
    nesting exception handlers.
    """

    tier: str
    reason: str
    hint: str | None = None
    details: dict[str, str] = field(default_factory=dict)
