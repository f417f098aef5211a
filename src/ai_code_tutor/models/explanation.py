"""Data models for tutor explanations."""

from dataclasses import dataclass
from typing import Literal

from .patch import Patch, PatchSpec


@dataclass(frozen=True)
class EducationalContent:
    """Teaching material for one error category."""

    title: str
    whats_wrong: str
    why_it_matters: str
    concept: str
    prevention: str
    related_topics: tuple[str, ...]


@dataclass(frozen=True)
class Explanation:
    """Explanation of a run, with an optional proposed fix."""

    summary: str
    detailed_explanation: str
    fix_summary: str
    confidence: float  # 0.0 to 1.0
    source: Literal["ai", "heuristic"]
    corrected_code: str | None = None
    patches: tuple[Patch, ...] | None = None
    patch: Patch | None = None
    root_cause_lines: tuple[int, ...] = ()
    hints: tuple[str, ...] = ()

    @property
    def patch_spec(self) -> PatchSpec:
        """The proposed fix in the priority shape the patch applier expects."""
        return PatchSpec(
            corrected_code=self.corrected_code,
            patches=self.patches,
            patch=self.patch,
        )

    @property
    def has_fix(self) -> bool:
        return bool(self.corrected_code) or bool(self.patches) or self.patch is not None
