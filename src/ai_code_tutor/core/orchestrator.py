"""Execution orchestrator.

Coordinates one run request end to end:
1. Try each execution tier in order until one yields a CompilationResult
2. Short-circuit foreign-language verdicts
3. Merge scanner diagnostics into the result
4. Feed the mistake tracker and the run history

A newer run abandons the one still in flight instead of queueing behind it.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

import structlog

from ai_code_tutor.core.scanner import DiagnosticScanner
from ai_code_tutor.models.compilation import (
    Classification,
    CompilationResult,
    RunRequest,
    TierFailure,
)
from ai_code_tutor.models.diagnostic import Diagnostic, ErrorCategory, Severity
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.async_helpers import CancellationToken, RunSupersededError
from ai_code_tutor.utils.logging import LogEventNames
from ai_code_tutor.utils.metrics import Timer, get_metrics

if TYPE_CHECKING:
    from ai_code_tutor.core.history import RunHistory
    from ai_code_tutor.core.mistake_tracker import MistakeTracker
    from ai_code_tutor.core.tiers import ExecutionTier

log = structlog.get_logger()

ALL_TIERS_FAILED_MESSAGE = "Execution failed: no execution strategy could run this program."

_COMPILER_ERROR_LINE = re.compile(r":(\d+):\s*error:\s*(.*)")


def extract_error_lines(output_text: str) -> list[Diagnostic]:
    """Turn ``File:N: error: msg`` lines of compiler output into diagnostics."""
    diagnostics = []
    for raw in output_text.splitlines():
        match = _COMPILER_ERROR_LINE.search(raw)
        if match:
            diagnostics.append(
                Diagnostic(
                    line=int(match.group(1)),
                    message=match.group(2).strip() or raw.strip(),
                    severity=Severity.ERROR,
                    category=ErrorCategory.OTHER_LOGICAL,
                )
            )
    return diagnostics


def merge_diagnostics(
    result: CompilationResult,
    scanned: Sequence[Diagnostic],
) -> CompilationResult:
    """Concatenate scanner and tier diagnostics onto ``result``.

    No deduplication. Output-text line extraction only applies to a
    definitive error that carries no structured diagnostics at all.
    """
    diagnostics = [*scanned, *result.diagnostics]
    if not diagnostics and result.is_definitive_error:
        diagnostics = extract_error_lines(result.output_text)
    return result.with_diagnostics(diagnostics)


def attach_hints(result: CompilationResult, failures: Sequence[TierFailure]) -> CompilationResult:
    """Append the hints of failed tiers to a degraded result's output."""
    hints = [failure.hint for failure in failures if failure.hint]
    if not hints or result.classification != Classification.DEGRADED:
        return result
    return replace(result, output_text="\n".join([result.output_text, *hints]))


class ExecutionOrchestrator:
    """Run source code through the tier chain and merge diagnostics.

    Example:
        orchestrator = ExecutionOrchestrator(
            tiers=[RemoteSandboxTier(...), AISimulatedCompilerTier(...), LocalSimulationTier()],
            scanner=DiagnosticScanner(),
        )
        result = await orchestrator.run(source_text, stdin=["5"])
    """

    def __init__(
        self,
        tiers: Sequence[ExecutionTier],
        scanner: DiagnosticScanner | None = None,
        tracker: MistakeTracker | None = None,
        history: RunHistory | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            tiers: Execution strategies, highest fidelity first.
            scanner: Static scanner whose diagnostics are merged into results.
            tracker: Optional mistake tracker fed with compiler output.
            history: Optional run history recorder.
        """
        if not tiers:
            raise ValueError("At least one execution tier is required")
        self._tiers = tuple(tiers)
        self._scanner = scanner or DiagnosticScanner()
        self._tracker = tracker
        self._history = history
        self._inflight: tuple[asyncio.Task[CompilationResult], CancellationToken] | None = None

    @property
    def tiers(self) -> tuple[ExecutionTier, ...]:
        return self._tiers

    async def run(
        self,
        source: SourceDocument | str,
        stdin: Sequence[str] = (),
    ) -> CompilationResult:
        """Compile and run ``source``.

        Args:
            source: Program text or document.
            stdin: Input values, one per line.

        Returns:
            Exactly one CompilationResult. Never raises for program or
            service errors.

        Raises:
            RunSupersededError: If a newer run started before this one finished.
        """
        document = SourceDocument.from_text(source) if isinstance(source, str) else source
        request = RunRequest(source=document, stdin=tuple(stdin))

        if self._inflight is not None:
            previous, previous_token = self._inflight
            if not previous.done():
                previous_token.cancel()
                previous.cancel()

        token = CancellationToken()
        task = asyncio.create_task(self._execute(request, token))
        self._inflight = (task, token)
        try:
            return await task
        except asyncio.CancelledError:
            if token.is_cancelled:
                get_metrics().runs_superseded.inc()
                log.info(LogEventNames.RUN_SUPERSEDED)
                raise RunSupersededError("Run was superseded by a newer run") from None
            raise
        finally:
            if self._inflight is not None and self._inflight[0] is task:
                self._inflight = None

    async def _execute(self, request: RunRequest, token: CancellationToken) -> CompilationResult:
        with structlog.contextvars.bound_contextvars(run_id=uuid.uuid4().hex[:12]):
            return await self._execute_bound(request, token)

    async def _execute_bound(
        self, request: RunRequest, token: CancellationToken
    ) -> CompilationResult:
        metrics = get_metrics()
        metrics.runs.inc()
        log.info(LogEventNames.RUN_STARTED, lines=request.source.line_count)

        with Timer(metrics.run_duration):
            result = await self._run_tiers(request, token)
            token.raise_if_cancelled()

            if result.is_foreign_language:
                log.info(
                    LogEventNames.FOREIGN_LANGUAGE_DETECTED,
                    language=result.detected_foreign_language,
                )
                return result

            result = merge_diagnostics(result, self._scanner.scan(request.source))

        self._record_side_effects(request, result)
        log.info(
            LogEventNames.RUN_COMPLETED,
            tier=result.tier,
            classification=result.classification.value,
            exit_code=result.exit_code,
            diagnostics=len(result.diagnostics),
        )
        return result

    async def _run_tiers(
        self,
        request: RunRequest,
        token: CancellationToken,
    ) -> CompilationResult:
        metrics = get_metrics()
        failures: list[TierFailure] = []

        for tier in self._tiers:
            token.raise_if_cancelled()
            labels = {"tier": tier.name}
            metrics.tier_attempts.inc(labels=labels)
            log.debug(LogEventNames.TIER_ATTEMPT, tier=tier.name)

            try:
                outcome = await tier.attempt(request)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.exception(LogEventNames.TIER_CRASHED, tier=tier.name, error=str(e))
                outcome = TierFailure(tier=tier.name, reason="crashed", details={"error": str(e)})

            if isinstance(outcome, CompilationResult):
                log.info(
                    LogEventNames.TIER_SUCCEEDED,
                    tier=tier.name,
                    classification=outcome.classification.value,
                )
                return attach_hints(outcome, failures)

            metrics.tier_failures.inc(labels=labels)
            log.warning(
                LogEventNames.TIER_FAILED,
                tier=tier.name,
                reason=outcome.reason,
                hint=outcome.hint,
                **outcome.details,
            )
            failures.append(outcome)

        log.error(
            LogEventNames.RUN_ALL_TIERS_FAILED,
            tiers=[failure.tier for failure in failures],
        )
        hints = [failure.hint for failure in failures if failure.hint]
        return CompilationResult(
            output_text="\n".join([ALL_TIERS_FAILED_MESSAGE, *hints]),
            exit_code=1,
            classification=Classification.DEGRADED,
        )

    def _record_side_effects(self, request: RunRequest, result: CompilationResult) -> None:
        if self._tracker is not None:
            try:
                self._tracker.observe(result.output_text)
            except Exception as e:
                log.warning("mistake_tracking_failed", error=str(e))

        if self._history is not None:
            try:
                self._history.record(request.source.text, result)
            except Exception as e:
                log.warning("history_record_failed", error=str(e))
