"""Static diagnostic scanner.

Runs every rule of the pattern catalog against every line of a document
and collects the diagnostics in catalog order per line.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from ai_code_tutor.core.patterns import PATTERN_RULES, PatternRule, ScanContext
from ai_code_tutor.models.diagnostic import Diagnostic
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.logging import LogEventNames
from ai_code_tutor.utils.metrics import get_metrics

log = structlog.get_logger()


class DiagnosticScanner:
    """Deterministic, side-effect free source scanner.

    The scanner never fails. A rule that raises is treated as not having
    fired and is logged, so a malformed or half-typed document is still
    scanned line by line.

    Example:
        scanner = DiagnosticScanner()
        for diagnostic in scanner.scan(source_text):
            print(diagnostic.line, diagnostic.message)
    """

    def __init__(self, rules: Sequence[PatternRule] = PATTERN_RULES) -> None:
        """Initialize the scanner.

        Args:
            rules: Pattern catalog to evaluate, in reporting order.
        """
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    def scan(self, source: SourceDocument | str) -> list[Diagnostic]:
        """Scan a document for known bug signatures.

        Args:
            source: Document or raw text to scan.

        Returns:
            Diagnostics in insertion order: line by line, catalog order
            within a line. Callers needing line order must sort.
        """
        document = SourceDocument.from_text(source) if isinstance(source, str) else source
        code = document.text
        diagnostics: list[Diagnostic] = []

        for index in range(document.line_count):
            ctx = ScanContext(lines=document.lines, index=index, code=code)
            for rule in self._rules:
                diagnostics.extend(self._evaluate(rule, ctx))

        log.debug(
            LogEventNames.SCAN_COMPLETED,
            lines=document.line_count,
            diagnostics=len(diagnostics),
        )
        if diagnostics:
            get_metrics().diagnostics_emitted.inc(len(diagnostics))
        return diagnostics

    def _evaluate(self, rule: PatternRule, ctx: ScanContext) -> list[Diagnostic]:
        try:
            return rule.evaluate(ctx)
        except Exception as e:
            log.warning(
                LogEventNames.RULE_FAILED,
                rule=rule.name,
                line=ctx.line_number,
                error=str(e),
            )
            return []
