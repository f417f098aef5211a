"""Data models for line-addressed source patches."""

from __future__ import annotations

from dataclasses import dataclass

from .source import SourceDocument


@dataclass(frozen=True)
class Patch:
    """Replace lines ``line_start..line_end`` (1-indexed, inclusive)."""

    line_start: int
    line_end: int
    replacement_text: str

    @property
    def replacement_lines(self) -> list[str]:
        return self.replacement_text.split("\n")


@dataclass(frozen=True)
class PatchSpec:
    """A fixer's proposed transformation.

    Priority is strict: ``corrected_code`` wins over ``patches``, which win
    over the legacy single ``patch``. They are never merged.
    """

    corrected_code: str | None = None
    patches: tuple[Patch, ...] | None = None
    patch: Patch | None = None

    @property
    def is_empty(self) -> bool:
        return self.corrected_code is None and self.patches is None and self.patch is None


@dataclass(frozen=True)
class PatchResult:
    """Outcome of applying a PatchSpec."""

    document: SourceDocument
    changed_lines: tuple[int, ...] = ()  # 1-indexed, relative to ``document``
    applied: int = 0
    skipped: int = 0
