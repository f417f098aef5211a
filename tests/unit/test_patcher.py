"""Tests for the patch applier."""

import pytest

from ai_code_tutor.core.patcher import PatchApplier, as_patch_spec
from ai_code_tutor.models.patch import Patch, PatchSpec
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.metrics import get_metrics


@pytest.fixture
def applier() -> PatchApplier:
    return PatchApplier()


@pytest.fixture
def five_lines() -> SourceDocument:
    return SourceDocument.from_text("l1\nl2\nl3\nl4\nl5")


class TestAsPatchSpec:
    """Test normalisation of accepted patch shapes."""

    def test_none(self) -> None:
        assert as_patch_spec(None).is_empty

    def test_text(self) -> None:
        assert as_patch_spec("x").corrected_code == "x"

    def test_single_patch(self) -> None:
        patch = Patch(1, 1, "x")
        assert as_patch_spec(patch).patch == patch

    def test_list(self) -> None:
        patches = [Patch(1, 1, "x"), Patch(2, 2, "y")]
        assert as_patch_spec(patches).patches == tuple(patches)

    def test_spec_passthrough(self) -> None:
        spec = PatchSpec(corrected_code="x")
        assert as_patch_spec(spec) is spec


class TestPatchApplier:
    """Test PatchApplier.apply."""

    def test_empty_spec_is_identity(self, applier, five_lines) -> None:
        """Test nothing changes when no fix is proposed."""
        result = applier.apply(five_lines, PatchSpec())
        assert result.document == five_lines
        assert result.changed_lines == ()
        assert result.applied == 0

    def test_corrected_code_wins(self, applier, five_lines) -> None:
        """Test a full replacement takes priority and marks every line."""
        spec = PatchSpec(
            corrected_code="a\nb\nc",
            patches=(Patch(1, 1, "ignored"),),
            patch=Patch(2, 2, "ignored"),
        )
        result = applier.apply(five_lines, spec)
        assert result.document.text == "a\nb\nc"
        assert result.changed_lines == (1, 2, 3)

    def test_patches_win_over_single_patch(self, applier, five_lines) -> None:
        """Test the patch array is used and the legacy patch ignored."""
        spec = PatchSpec(patches=(Patch(2, 2, "two"),), patch=Patch(1, 1, "one"))
        result = applier.apply(five_lines, spec)
        assert result.document.lines == ("l1", "two", "l3", "l4", "l5")

    def test_single_patch(self, applier, five_lines) -> None:
        """Test the legacy single patch."""
        result = applier.apply(five_lines, Patch(5, 5, "end"))
        assert result.document.lines[-1] == "end"
        assert result.changed_lines == (5,)

    def test_two_patch_scenario(self, applier, five_lines) -> None:
        """Test two patches are applied bottom-up with correct markers."""
        result = applier.apply(five_lines, [Patch(1, 1, "a"), Patch(3, 4, "b\nc")])

        assert result.document.lines == ("a", "l2", "b", "c", "l5")
        assert result.changed_lines == (1, 3, 4)
        assert result.applied == 2
        assert result.skipped == 0

    def test_order_independent(self, applier, five_lines) -> None:
        """Test ascending and descending input give the same document."""
        ascending = [Patch(1, 1, "a"), Patch(3, 4, "b\nc\nd")]
        forward = applier.apply(five_lines, ascending)
        backward = applier.apply(five_lines, list(reversed(ascending)))
        assert forward == backward

    def test_ascending_splice_corrupts_document(self, applier, five_lines) -> None:
        """Test top-down splicing hits shifted lines, while the applier does not."""
        patches = [Patch(1, 1, "a\nb"), Patch(3, 4, "x")]

        naive = five_lines
        for patch in sorted(patches, key=lambda p: p.line_start):
            naive = naive.replace_lines(patch.line_start, patch.line_end, patch.replacement_lines)
        result = applier.apply(five_lines, patches)

        assert naive.lines == ("a", "b", "x", "l4", "l5")
        assert result.document.lines == ("a", "b", "l2", "x", "l5")
        assert result.document != naive

    def test_markers_shift_when_lines_grow(self, applier, five_lines) -> None:
        """Test markers from a lower patch move when an upper patch inserts lines."""
        result = applier.apply(five_lines, [Patch(1, 1, "a\nb\nc"), Patch(4, 4, "x")])
        assert result.document.lines == ("a", "b", "c", "l2", "l3", "x", "l5")
        assert result.changed_lines == (1, 2, 3, 6)
        for line in result.changed_lines:
            assert result.document.line(line) in {"a", "b", "c", "x"}

    def test_deleting_lines(self, applier, five_lines) -> None:
        """Test an empty replacement removes the range but leaves a blank line."""
        result = applier.apply(five_lines, Patch(2, 4, ""))
        assert result.document.lines == ("l1", "", "l5")
        assert result.changed_lines == (2,)

    def test_end_clamped_to_document(self, applier, five_lines) -> None:
        """Test line_end past the end is clamped."""
        result = applier.apply(five_lines, Patch(4, 99, "tail"))
        assert result.document.lines == ("l1", "l2", "l3", "tail")

    def test_start_clamped_to_first_line(self, applier, five_lines) -> None:
        """Test line_start below 1 is clamped."""
        result = applier.apply(five_lines, Patch(0, 1, "head"))
        assert result.document.lines == ("head", "l2", "l3", "l4", "l5")

    def test_append_after_last_line(self, applier, five_lines) -> None:
        """Test a patch starting one past the end appends."""
        result = applier.apply(five_lines, Patch(6, 6, "l6"))
        assert result.document.lines == ("l1", "l2", "l3", "l4", "l5", "l6")
        assert result.changed_lines == (6,)

    def test_inverted_range_skipped(self, applier, five_lines) -> None:
        """Test line_start after line_end is skipped, not raised."""
        before = get_metrics().patches_skipped.get()
        result = applier.apply(five_lines, [Patch(4, 2, "x"), Patch(1, 1, "a")])
        assert result.document.lines[0] == "a"
        assert result.skipped == 1
        assert result.applied == 1
        assert get_metrics().patches_skipped.get() == before + 1

    def test_out_of_range_skipped(self, applier, five_lines) -> None:
        """Test a patch far past the end is skipped."""
        result = applier.apply(five_lines, Patch(40, 41, "x"))
        assert result.document == five_lines
        assert result.skipped == 1

    def test_overlapping_patch_skipped(self, applier, five_lines) -> None:
        """Test the lower of two overlapping patches is dropped."""
        result = applier.apply(five_lines, [Patch(2, 3, "x"), Patch(3, 4, "y")])
        assert result.document.lines == ("l1", "l2", "y", "l5")
        assert result.applied == 1
        assert result.skipped == 1

    def test_markers_are_valid_lines(self, applier, five_lines) -> None:
        """Test every changed marker addresses a line of the new document."""
        result = applier.apply(
            five_lines, [Patch(1, 2, "a"), Patch(3, 3, "b\nc\nd"), Patch(5, 5, "e")]
        )
        assert len(set(result.changed_lines)) == len(result.changed_lines)
        assert all(1 <= n <= result.document.line_count for n in result.changed_lines)
