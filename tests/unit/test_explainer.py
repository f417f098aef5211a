"""Tests for the explainer and the heuristic fixer."""

import pytest

from ai_code_tutor.core.education import EDUCATION, educational_content
from ai_code_tutor.core.explainer import (
    AUDITOR_SYSTEM_PROMPT,
    TUTOR_SYSTEM_PROMPT,
    Explainer,
    ExplanationResponse,
    HeuristicFixer,
)
from ai_code_tutor.core.patcher import PatchApplier
from ai_code_tutor.models.compilation import Classification, CompilationResult
from ai_code_tutor.models.diagnostic import Diagnostic, ErrorCategory, Severity
from ai_code_tutor.models.patch import Patch
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.async_helpers import ForeignLanguageError, LLMServiceError
from ai_code_tutor.utils.security import RedactionError


def compile_error(output: str, diagnostics=()) -> CompilationResult:
    return CompilationResult(
        output_text=output,
        exit_code=1,
        classification=Classification.ERROR,
        diagnostics=tuple(diagnostics),
    )


def flagged(line: int, category: ErrorCategory) -> CompilationResult:
    return CompilationResult(
        output_text="",
        exit_code=0,
        classification=Classification.SUCCESS,
        diagnostics=(
            Diagnostic(line=line, message="found", severity=Severity.WARNING, category=category),
        ),
    )


@pytest.fixture
def fixer() -> HeuristicFixer:
    return HeuristicFixer()


class TestEducation:
    """Test the educational content table."""

    def test_every_category_covered(self) -> None:
        """Test each category has content."""
        assert set(EDUCATION) == set(ErrorCategory)

    def test_lookup(self) -> None:
        assert educational_content(ErrorCategory.OFF_BY_ONE).title == "Off-by-One Error"


class TestHeuristicFixer:
    """Test offline explanations."""

    def test_missing_semicolon_javac(self, fixer, missing_semicolon_program) -> None:
        """Test javac's line is patched and the result compiles structurally."""
        document = SourceDocument.from_text(missing_semicolon_program)
        explanation = fixer.explain(document, compile_error("Main.java:4: error: ';' expected"))

        assert explanation.summary == "Missing Semicolon"
        assert explanation.source == "heuristic"
        assert explanation.patch == Patch(4, 4, "        System.out.println(total);")
        assert explanation.root_cause_lines == (4,)

        patched = PatchApplier().apply(document, explanation.patch_spec)
        assert patched.document.line(4).endswith("(total);")

    def test_missing_semicolon_gcc(self, fixer) -> None:
        """Test gcc reports the following line, so the previous one is patched."""
        document = SourceDocument.from_text(
            '#include <stdio.h>\nint main() {\n    printf("hi")\n    return 0;\n}'
        )
        output = "main.c:4:5: error: expected ';' before 'return'"

        explanation = fixer.explain(document, compile_error(output))

        assert explanation.patch == Patch(3, 3, '    printf("hi");')

    def test_semicolon_wins_over_diagnostics(self, fixer, missing_semicolon_program) -> None:
        """Test a missing semicolon is explained before other findings."""
        document = SourceDocument.from_text(missing_semicolon_program)
        result = compile_error(
            "Main.java:4: error: ';' expected",
            diagnostics=[
                Diagnostic(line=4, message="';' expected", severity=Severity.ERROR),
            ],
        )
        assert fixer.explain(document, result).summary == "Missing Semicolon"

    def test_off_by_one_patch(self, fixer, off_by_one_program) -> None:
        """Test '<=' in the loop header becomes '<'."""
        document = SourceDocument.from_text(off_by_one_program)

        explanation = fixer.explain(document, flagged(4, ErrorCategory.OFF_BY_ONE))

        assert explanation.summary == "Off-by-One Error"
        assert explanation.confidence == 0.95
        assert explanation.patch == Patch(4, 4, "        for (int i = 0; i < 5; i++) {")
        assert "**Location:** Line 4" in explanation.detailed_explanation

    def test_out_of_bounds_patch(self, fixer, off_by_one_program) -> None:
        """Test a literal index past the end is pulled back by one."""
        document = SourceDocument.from_text(off_by_one_program)

        explanation = fixer.explain(document, flagged(7, ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS))

        assert explanation.summary == "Array Index Out of Bounds"
        assert explanation.patch == Patch(7, 7, "        System.out.println(arr[4]);")

    def test_no_patch_for_other_categories(self, fixer, off_by_one_program) -> None:
        """Test categories without a patch rule explain but do not fix."""
        document = SourceDocument.from_text(off_by_one_program)
        explanation = fixer.explain(document, flagged(5, ErrorCategory.NULL_POINTER))
        assert explanation.summary == "Null Pointer Dereference"
        assert explanation.has_fix is False

    def test_unknown_line_has_no_patch(self, fixer, off_by_one_program) -> None:
        """Test a diagnostic without a line still explains."""
        document = SourceDocument.from_text(off_by_one_program)
        explanation = fixer.explain(document, flagged(0, ErrorCategory.OFF_BY_ONE))
        assert explanation.patch is None
        assert explanation.root_cause_lines == ()

    def test_generic_failure(self, fixer) -> None:
        """Test an unrecognised error."""
        explanation = fixer.explain(
            SourceDocument.from_text("x"), compile_error("Main.java:1: error: cannot find symbol")
        )
        assert explanation.summary == "Compilation Failed"
        assert explanation.confidence == 0.5

    def test_clean_run(self, fixer, hello_world, success_result) -> None:
        """Test a clean run."""
        explanation = fixer.explain(SourceDocument.from_text(hello_world), success_result)
        assert explanation.summary == "Code looks good!"
        assert explanation.confidence == 1.0


class TestExplanationResponse:
    """Test validation of the model's explanation."""

    def test_blank_corrected_code_is_none(self) -> None:
        response = ExplanationResponse.model_validate({"summary": "ok", "corrected_code": "  "})
        assert response.to_explanation().corrected_code is None

    def test_patches_converted(self) -> None:
        response = ExplanationResponse.model_validate(
            {
                "summary": "Off by one",
                "minimal_fix_patches": [{"line_start": 4, "line_end": 4, "replacement": "x"}],
                "confidence": 0.8,
            }
        )
        explanation = response.to_explanation()
        assert explanation.patches == (Patch(4, 4, "x"),)
        assert explanation.source == "ai"
        assert explanation.confidence == 0.8

    def test_confidence_range(self) -> None:
        with pytest.raises(ValueError):
            ExplanationResponse.model_validate({"summary": "x", "confidence": 3})


class TestExplainer:
    """Test the model-backed explainer."""

    @pytest.mark.asyncio
    async def test_without_llm_uses_fixer(self, hello_world, success_result) -> None:
        """Test the heuristic path when no gateway is configured."""
        explanation = await Explainer().explain(hello_world, success_result)
        assert explanation.source == "heuristic"

    @pytest.mark.asyncio
    async def test_ai_explanation(self, mock_llm, off_by_one_program) -> None:
        """Test a valid model answer is used as-is."""
        llm = mock_llm(
            {
                "summary": "Loop overruns the array",
                "detailed_explanation": "i reaches 5",
                "fix_summary": "Use <",
                "minimal_fix_patches": [
                    {"line_start": 4, "line_end": 4, "replacement": "for (int i = 0; i < 5; i++) {"}
                ],
                "root_cause_lines": [4],
                "confidence": 0.9,
            }
        )
        explanation = await Explainer(llm).explain(
            off_by_one_program, flagged(4, ErrorCategory.OFF_BY_ONE)
        )
        assert explanation.source == "ai"
        assert explanation.summary == "Loop overruns the array"
        assert explanation.root_cause_lines == (4,)
        assert explanation.has_fix

    @pytest.mark.asyncio
    async def test_invalid_answer_falls_back(self, mock_llm, off_by_one_program) -> None:
        """Test a schema violation falls back to the fixer."""
        llm = mock_llm({"summary": ""})
        explanation = await Explainer(llm).explain(
            off_by_one_program, flagged(4, ErrorCategory.OFF_BY_ONE)
        )
        assert explanation.source == "heuristic"
        assert explanation.summary == "Off-by-One Error"

    @pytest.mark.asyncio
    async def test_non_object_falls_back(self, mock_llm, hello_world, success_result) -> None:
        """Test a non-object answer falls back to the fixer."""
        explanation = await Explainer(mock_llm("just text")).explain(hello_world, success_result)
        assert explanation.source == "heuristic"

    @pytest.mark.asyncio
    async def test_gateway_error_falls_back(self, mock_llm, hello_world, success_result) -> None:
        """Test service errors fall back to the fixer."""
        llm = mock_llm(side_effect=LLMServiceError("down"))
        explanation = await Explainer(llm).explain(hello_world, success_result)
        assert explanation.source == "heuristic"

    @pytest.mark.asyncio
    async def test_redaction_failure_falls_back(
        self, mock_llm, hello_world, success_result
    ) -> None:
        """Test a failed outbound redaction falls back to the fixer."""
        llm = mock_llm(side_effect=RedactionError("Cannot send to LLM: redaction failed"))
        explanation = await Explainer(llm).explain(hello_world, success_result)
        assert explanation.source == "heuristic"

    @pytest.mark.asyncio
    async def test_foreign_language_rejected(self, mock_llm) -> None:
        """Test explaining a foreign-language verdict raises."""
        llm = mock_llm({"summary": "x"})
        foreign = CompilationResult(
            output_text="Detected Python code.",
            exit_code=1,
            classification=Classification.FOREIGN_LANGUAGE,
            detected_foreign_language="Python",
        )
        with pytest.raises(ForeignLanguageError) as exc_info:
            await Explainer(llm).explain("print('hi')", foreign)
        assert exc_info.value.language == "Python"
        llm.complete.assert_not_awaited()

    def test_failure_prompt(self, mock_llm, off_by_one_program) -> None:
        """Test failed or flagged runs use the tutor prompt."""
        messages = Explainer(mock_llm()).build_messages(
            SourceDocument.from_text(off_by_one_program), flagged(4, ErrorCategory.OFF_BY_ONE)
        )
        assert messages[0]["content"] == TUTOR_SYSTEM_PROMPT
        assert '"errorType": "OFF_BY_ONE"' in messages[1]["content"]

    def test_audit_prompt(self, mock_llm, success_result) -> None:
        """Test clean runs are audited against the class name."""
        document = SourceDocument.from_text("public class Largest {\n}")
        messages = Explainer(mock_llm()).build_messages(document, success_result)
        assert messages[0]["content"] == AUDITOR_SYSTEM_PROMPT
        assert 'The class name is "Largest"' in messages[1]["content"]
