"""Line-addressed patch application.

Patches come from a non-deterministic producer (the AI explainer) or the
local heuristic fixer, so malformed ones are clamped or skipped, never
raised.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from ai_code_tutor.models.patch import Patch, PatchResult, PatchSpec
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.logging import LogEventNames
from ai_code_tutor.utils.metrics import get_metrics

log = structlog.get_logger()

PatchInput = PatchSpec | Sequence[Patch] | Patch | str | None


def as_patch_spec(value: PatchInput) -> PatchSpec:
    """Normalize the accepted patch shapes into a PatchSpec."""
    if value is None:
        return PatchSpec()
    if isinstance(value, PatchSpec):
        return value
    if isinstance(value, str):
        return PatchSpec(corrected_code=value)
    if isinstance(value, Patch):
        return PatchSpec(patch=value)
    return PatchSpec(patches=tuple(value))


class PatchApplier:
    """Apply a fixer's PatchSpec to a source document.

    Priority is strict: a full replacement wins over a patch array, which
    wins over a single legacy patch.

    Example:
        result = PatchApplier().apply(document, [Patch(3, 4, "b\\nc"), Patch(1, 1, "a")])
        print(result.document.text, result.changed_lines)
    """

    def apply(self, document: SourceDocument, spec: PatchInput) -> PatchResult:
        """Apply ``spec`` to ``document``.

        Args:
            document: Current source.
            spec: PatchSpec, patch list, single patch, full replacement text
                or None.

        Returns:
            The patched document and the 1-indexed lines that changed.
        """
        spec = as_patch_spec(spec)

        if spec.corrected_code is not None:
            replaced = SourceDocument.from_text(spec.corrected_code)
            log.debug(LogEventNames.PATCH_APPLIED, mode="replace", lines=replaced.line_count)
            return PatchResult(
                document=replaced,
                changed_lines=tuple(range(1, replaced.line_count + 1)),
                applied=1,
            )

        if spec.patches is not None:
            return self._apply_many(document, spec.patches)

        if spec.patch is not None:
            return self._apply_many(document, (spec.patch,))

        return PatchResult(document=document)

    def _apply_many(self, document: SourceDocument, patches: Sequence[Patch]) -> PatchResult:
        # Later patches first so earlier line numbers stay valid
        ordered = sorted(patches, key=lambda p: (p.line_start, p.line_end), reverse=True)
        changed: list[int] = []
        applied = skipped = 0
        # Lowest original line already rewritten. Everything at or after it is taken.
        boundary: int | None = None

        for patch in ordered:
            span = self._normalize(patch, document.line_count)
            if span is None:
                skipped += 1
                continue
            start, end = span
            if boundary is not None and end >= boundary:
                self._skip(patch, "overlaps an applied patch")
                skipped += 1
                continue

            replacement = patch.replacement_lines
            document = document.replace_lines(start, end, replacement)
            delta = len(replacement) - (end - start + 1)
            changed = [line + delta for line in changed]
            changed.extend(range(start, start + len(replacement)))
            boundary = start
            applied += 1
            log.debug(
                LogEventNames.PATCH_APPLIED,
                mode="splice",
                line_start=start,
                line_end=end,
                inserted=len(replacement),
            )

        if skipped:
            get_metrics().patches_skipped.inc(skipped)
        return PatchResult(
            document=document,
            changed_lines=tuple(sorted(changed)),
            applied=applied,
            skipped=skipped,
        )

    def _normalize(self, patch: Patch, line_count: int) -> tuple[int, int] | None:
        """Clamp a patch to the document, or return None if it must be skipped."""
        if patch.line_start > patch.line_end:
            self._skip(patch, "line_start after line_end")
            return None
        if patch.line_start > line_count + 1:
            self._skip(patch, "line_start past end of document")
            return None

        start = max(patch.line_start, 1)
        end = min(patch.line_end, line_count)
        if end < start - 1:
            self._skip(patch, "empty range after clamping")
            return None
        return start, end

    @staticmethod
    def _skip(patch: Patch, reason: str) -> None:
        log.warning(
            LogEventNames.PATCH_SKIPPED,
            line_start=patch.line_start,
            line_end=patch.line_end,
            reason=reason,
        )
