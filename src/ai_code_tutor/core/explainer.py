"""Tutor explanations and proposed fixes.

The Explainer asks the model gateway for an explanation and a fix. When the
gateway is unavailable, or answers with something that fails validation,
the HeuristicFixer builds one locally from the educational content and a
handful of deterministic patch rules.
"""

from __future__ import annotations

import json
import re

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from ai_code_tutor.core.education import educational_content
from ai_code_tutor.interfaces.llm import ChatMessage, LLMProvider
from ai_code_tutor.models.compilation import CompilationResult
from ai_code_tutor.models.diagnostic import Diagnostic, ErrorCategory
from ai_code_tutor.models.explanation import Explanation
from ai_code_tutor.models.patch import Patch
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.async_helpers import (
    ForeignLanguageError,
    LLMResponseError,
    ServiceError,
)
from ai_code_tutor.utils.security import SecurityError

log = structlog.get_logger()


# =============================================================================
# Prompts
# =============================================================================

TUTOR_SYSTEM_PROMPT = "You are a Java programming expert. Always reply in JSON."

AUDITOR_SYSTEM_PROMPT = (
    "You are a Senior Java Code Auditor. You verify if the code matches the "
    "Class Name intent. JSON only."
)

FAILURE_PROMPT = """You are a helpful Java programming tutor. Analyze the following Java code and compiler output.

CODE:
{code}

COMPILER/RUNTIME OUTPUT:
{output}

LOGICAL ERRORS DETECTED:
{diagnostics}

Provide a JSON response with the following structure:
{{
    "summary": "Short summary of the issue(s)",
    "detailed_explanation": "What went wrong and why",
    "fix_summary": "One sentence on how to fix it",
    "corrected_code": "The full corrected Java code",
    "minimal_fix_patches": [
        {{"line_start": 1, "line_end": 1, "replacement": "The replacement lines only"}}
    ],
    "root_cause_lines": [1],
    "hints": ["hint"],
    "confidence": 0.9
}}

IMPORTANT:
- Identify ALL issues (syntax, logical, runtime).
- minimal_fix_patches must fix ALL identified issues.
- Line numbers are 1-indexed and line_end is inclusive."""

AUDIT_PROMPT = """The code ran successfully (exit code 0). Verify its LOGIC.

The class name is "{class_name}". The code must do what that name implies
(a class named "Largest" must find the largest number, "Prime" must check primes correctly).

CODE:
{code}

OUTPUT:
{output}

Check for semantic errors against the class name, wrong formulas or operator
precedence, wrong conditions, unreachable code, loop range and termination errors.

If the logic is correct, return "minimal_fix_patches": [] and "summary": "Code works perfectly".
Otherwise provide the fix.

Provide a JSON response:
{{
    "summary": "Summary of the logical flaw",
    "detailed_explanation": "Why the logic is wrong",
    "fix_summary": "Correction",
    "corrected_code": "Full corrected code",
    "minimal_fix_patches": [{{"line_start": 1, "line_end": 1, "replacement": "string"}}],
    "confidence": 0.9
}}"""

_CLASS_NAME = re.compile(r"class\s+(\w+)")


# =============================================================================
# Response validation
# =============================================================================


class PatchResponse(BaseModel):
    """Validated line patch from the model."""

    line_start: int
    line_end: int
    replacement: str = Field(max_length=20000)

    def to_patch(self) -> Patch:
        return Patch(self.line_start, self.line_end, self.replacement)


class ExplanationResponse(BaseModel):
    """Validated explanation from the model."""

    summary: str = Field(min_length=1, max_length=2000)
    detailed_explanation: str = Field("", max_length=10000)
    fix_summary: str = Field("", max_length=2000)
    corrected_code: str | None = Field(None, max_length=50000)
    minimal_fix_patches: list[PatchResponse] | None = Field(None, max_length=50)
    minimal_fix_patch: PatchResponse | None = None
    root_cause_lines: list[int] = Field(default=[], max_length=100)
    hints: list[str] = Field(default=[], max_length=20)
    confidence: float = Field(0.5, ge=0.0, le=1.0)

    @field_validator("corrected_code", mode="before")
    @classmethod
    def _blank_code(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_explanation(self) -> Explanation:
        return Explanation(
            summary=self.summary,
            detailed_explanation=self.detailed_explanation,
            fix_summary=self.fix_summary,
            confidence=self.confidence,
            source="ai",
            corrected_code=self.corrected_code,
            patches=(
                tuple(p.to_patch() for p in self.minimal_fix_patches)
                if self.minimal_fix_patches is not None
                else None
            ),
            patch=self.minimal_fix_patch.to_patch() if self.minimal_fix_patch else None,
            root_cause_lines=tuple(self.root_cause_lines),
            hints=tuple(self.hints),
        )


# =============================================================================
# Heuristic fixer
# =============================================================================

_MISSING_SEMICOLON = re.compile(
    r":(?P<line>\d+):(?:\d+:)?\s*error:\s*(?:(?P<javac>';'\s*expected)|expected\s*';')"
)
_LITERAL_INDEX = re.compile(r"\[(\d+)\]")


class HeuristicFixer:
    """Deterministic, offline explanation and fix producer."""

    def explain(self, source: SourceDocument, result: CompilationResult) -> Explanation:
        """Explain ``result`` without a model.

        A missing semicolon reported by the compiler is handled first since
        nothing else runs until it compiles. Then the first diagnostic is
        explained from the educational content of its category.
        """
        semicolon = _MISSING_SEMICOLON.search(result.output_text)
        if semicolon:
            return self._missing_semicolon(source, semicolon)

        if result.diagnostics:
            return self._from_diagnostic(source, result.diagnostics[0])

        if result.exit_code != 0 or "error:" in result.output_text:
            return Explanation(
                summary="Compilation Failed",
                detailed_explanation="The code failed to compile. Please check the syntax.",
                fix_summary="Fix the syntax errors reported by the compiler.",
                confidence=0.5,
                source="heuristic",
            )

        return Explanation(
            summary="Code looks good!",
            detailed_explanation="No obvious errors were found. Great job!",
            fix_summary="N/A",
            confidence=1.0,
            source="heuristic",
        )

    def propose_patch(self, source: SourceDocument, diagnostic: Diagnostic) -> Patch | None:
        """Propose a one-line fix for an off-by-one or out-of-bounds diagnostic."""
        if diagnostic.category not in (
            ErrorCategory.OFF_BY_ONE,
            ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS,
        ):
            return None
        if not 0 < diagnostic.line <= source.line_count:
            return None

        line = source.line(diagnostic.line)
        if "<=" in line and "for" in line:
            return Patch(diagnostic.line, diagnostic.line, line.replace("<=", "<", 1))

        if diagnostic.category == ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS:
            match = _LITERAL_INDEX.search(line)
            if match and int(match.group(1)) > 0:
                index = int(match.group(1))
                fixed = line[: match.start()] + f"[{index - 1}]" + line[match.end() :]
                return Patch(diagnostic.line, diagnostic.line, fixed)
        return None

    def _from_diagnostic(self, source: SourceDocument, diagnostic: Diagnostic) -> Explanation:
        content = educational_content(diagnostic.category)
        detail = (
            f"**What's Wrong:** {content.whats_wrong}\n\n"
            f"**Why It Matters:** {content.why_it_matters}\n\n"
            f"**Concept:** {content.concept}\n\n"
            f"**Location:** Line {diagnostic.line}\n{diagnostic.message}"
        )
        return Explanation(
            summary=content.title,
            detailed_explanation=detail,
            fix_summary=content.prevention,
            confidence=0.95,
            source="heuristic",
            patch=self.propose_patch(source, diagnostic),
            root_cause_lines=(diagnostic.line,) if diagnostic.line else (),
            hints=(content.concept, *content.related_topics),
        )

    def _missing_semicolon(self, source: SourceDocument, match: re.Match[str]) -> Explanation:
        reported = int(match.group("line"))
        # javac points at the line missing the ';', gcc at the token after it
        candidates = (
            (reported, reported - 1) if match.group("javac") else (reported - 1, reported)
        )
        patch = None
        for number in candidates:
            if not 1 <= number <= source.line_count:
                continue
            line = source.line(number)
            stripped = line.strip()
            if stripped and not stripped.endswith((";", "}", "{")) and not stripped.startswith(
                ("//", "/*")
            ):
                patch = Patch(number, number, line.rstrip() + ";")
                break

        return Explanation(
            summary="Missing Semicolon",
            detailed_explanation=(
                "Every statement must end with a semicolon (;). "
                "This is one of the most common errors."
            ),
            fix_summary="Add a semicolon at the end of the line.",
            confidence=0.95,
            source="heuristic",
            patch=patch,
            root_cause_lines=(patch.line_start,) if patch else (reported,),
            hints=("Look for the line reported in the error", "Check the previous line too"),
        )


# =============================================================================
# Explainer
# =============================================================================


class Explainer:
    """Produce an Explanation for a finished run.

    Example:
        explainer = Explainer(llm=GroqAdapter(config))
        explanation = await explainer.explain(document, result)
        if explanation.has_fix:
            patched = PatchApplier().apply(document, explanation.patch_spec)
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        fixer: HeuristicFixer | None = None,
    ) -> None:
        self._llm = llm
        self._fixer = fixer or HeuristicFixer()

    def build_messages(
        self,
        source: SourceDocument,
        result: CompilationResult,
    ) -> list[ChatMessage]:
        """Failure analysis for failed or flagged runs, a logic audit otherwise."""
        code = source.text
        if result.exit_code != 0 or result.diagnostics:
            diagnostics = json.dumps(
                [
                    {
                        "line": d.line,
                        "message": d.message,
                        "severity": d.severity.value,
                        "errorType": d.category.value,
                    }
                    for d in result.diagnostics
                ]
            )
            prompt = FAILURE_PROMPT.format(
                code=code, output=result.output_text, diagnostics=diagnostics
            )
            return [
                {"role": "system", "content": TUTOR_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ]

        match = _CLASS_NAME.search(code)
        class_name = match.group(1) if match else "Unknown"
        prompt = AUDIT_PROMPT.format(class_name=class_name, code=code, output=result.output_text)
        return [
            {"role": "system", "content": AUDITOR_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    async def explain(
        self,
        source: SourceDocument | str,
        result: CompilationResult,
    ) -> Explanation:
        """Explain a run and propose a fix.

        Args:
            source: Program that produced ``result``.
            result: Merged CompilationResult of the run.

        Returns:
            An AI explanation, or a heuristic one when the model is
            unavailable or its answer fails validation.

        Raises:
            ForeignLanguageError: If the run was classified as another language.
        """
        if result.is_foreign_language:
            raise ForeignLanguageError(result.detected_foreign_language or "Unknown")

        document = SourceDocument.from_text(source) if isinstance(source, str) else source
        if self._llm is None:
            return self._fixer.explain(document, result)

        try:
            data = await self._llm.complete(self.build_messages(document, result), json_mode=True)
            if not isinstance(data, dict):
                raise LLMResponseError("Explanation is not a JSON object")
            return ExplanationResponse.model_validate(data).to_explanation()
        except (ServiceError, SecurityError, ValidationError) as e:
            log.warning("ai_explanation_failed_using_heuristic", error=str(e))
            return self._fixer.explain(document, result)
