"""Caller-facing engine facade.

TutorEngine wires the orchestrator, scanner, patch applier, explainer,
translator, mistake tracker and run history together behind the operations
an editor front end needs.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from ai_code_tutor.core.explainer import Explainer
from ai_code_tutor.core.history import RunHistory
from ai_code_tutor.core.mistake_tracker import MistakeTracker
from ai_code_tutor.core.orchestrator import ExecutionOrchestrator
from ai_code_tutor.core.patcher import PatchApplier, PatchInput
from ai_code_tutor.core.scanner import DiagnosticScanner
from ai_code_tutor.core.tiers import (
    AISimulatedCompilerTier,
    ExecutionTier,
    LocalSimulationTier,
    RemoteSandboxTier,
)
from ai_code_tutor.core.translator import Translator
from ai_code_tutor.models.compilation import CompilationResult
from ai_code_tutor.models.diagnostic import Diagnostic
from ai_code_tutor.models.explanation import Explanation
from ai_code_tutor.models.patch import PatchResult
from ai_code_tutor.models.source import SourceDocument
from ai_code_tutor.utils.async_helpers import ForeignLanguageError

if TYPE_CHECKING:
    from ai_code_tutor.config.schema import TutorConfig
    from ai_code_tutor.interfaces.llm import LLMProvider
    from ai_code_tutor.interfaces.storage import KeyValueStore

log = structlog.get_logger()


class TutorEngine:
    """Entry point for editor integrations.

    Example:
        engine = create_engine(load_config(Path("config/config.yaml")))
        result = await engine.run_source(code, stdin=["5"])
        explanation = await engine.explain(code, result)
        if explanation.has_fix:
            code = engine.apply_patch(code, explanation.patch_spec, result)
    """

    def __init__(
        self,
        orchestrator: ExecutionOrchestrator,
        scanner: DiagnosticScanner,
        tracker: MistakeTracker,
        history: RunHistory,
        explainer: Explainer | None = None,
        translator: Translator | None = None,
        patcher: PatchApplier | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._scanner = scanner
        self._tracker = tracker
        self._history = history
        self._explainer = explainer or Explainer()
        self._translator = translator or Translator()
        self._patcher = patcher or PatchApplier()

    @property
    def mistakes(self) -> MistakeTracker:
        return self._tracker

    @property
    def history(self) -> RunHistory:
        return self._history

    @property
    def orchestrator(self) -> ExecutionOrchestrator:
        return self._orchestrator

    async def run_source(self, text: str, stdin: Sequence[str] = ()) -> CompilationResult:
        """Compile and run ``text`` through the tier chain.

        Raises:
            RunSupersededError: If another run started before this one finished.
        """
        return await self._orchestrator.run(text, stdin)

    def scan_source(self, text: str) -> list[Diagnostic]:
        return self._scanner.scan(text)

    def patch_source(
        self,
        text: str,
        spec: PatchInput,
        result: CompilationResult | None = None,
    ) -> PatchResult:
        """Apply a proposed fix and report which lines changed.

        Args:
            text: Current source.
            spec: Fix to apply (PatchSpec, patches, a patch, or full text).
            result: The run the fix was proposed for, if any.

        Raises:
            ForeignLanguageError: If ``result`` is a foreign-language verdict.
        """
        if result is not None and result.is_foreign_language:
            raise ForeignLanguageError(result.detected_foreign_language or "Unknown")
        return self._patcher.apply(SourceDocument.from_text(text), spec)

    def apply_patch(
        self,
        text: str,
        spec: PatchInput,
        result: CompilationResult | None = None,
    ) -> str:
        """Same as ``patch_source`` but returns only the new text."""
        return self.patch_source(text, spec, result).document.text

    async def explain(self, text: str, result: CompilationResult) -> Explanation:
        return await self._explainer.explain(text, result)

    async def translate_source(self, text: str, from_language: str) -> str:
        return await self._translator.translate(text, from_language)


def create_engine(
    config: TutorConfig,
    store: KeyValueStore | None = None,
) -> TutorEngine:
    """Factory function to create a TutorEngine with all dependencies.

    Args:
        config: Application configuration
        store: Key-value store override. Defaults to a JSON file at
            ``config.storage.path``.

    Returns:
        Configured TutorEngine instance

    Raises:
        ValueError: If configuration is invalid
    """
    if store is None:
        from ai_code_tutor.adapters.storage.file import JsonFileStore

        store = JsonFileStore(config.storage.path.expanduser())

    llm = _create_llm_adapter(config)
    scanner = DiagnosticScanner()
    tracker = MistakeTracker(store)
    history = RunHistory(store, limit=config.storage.history_limit)

    orchestrator = ExecutionOrchestrator(
        tiers=_create_tiers(config, llm),
        scanner=scanner,
        tracker=tracker,
        history=history,
    )
    log.info(
        "engine_created",
        tiers=[tier.name for tier in orchestrator.tiers],
        llm=llm.model_name if llm else None,
    )
    return TutorEngine(
        orchestrator=orchestrator,
        scanner=scanner,
        tracker=tracker,
        history=history,
        explainer=Explainer(llm),
        translator=Translator(llm),
    )


def _create_tiers(config: TutorConfig, llm: LLMProvider | None) -> list[ExecutionTier]:
    tiers: list[ExecutionTier] = []
    if config.sandbox.enabled:
        from ai_code_tutor.adapters.sandbox.piston import PistonAdapter

        tiers.append(RemoteSandboxTier(PistonAdapter(config.sandbox), config.sandbox))
    if llm is not None:
        tiers.append(
            AISimulatedCompilerTier(
                llm,
                cache_ttl=config.llm.simulation_cache_ttl,
                cache_size=config.llm.simulation_cache_size,
            )
        )
    tiers.append(LocalSimulationTier())
    return tiers


def _create_llm_adapter(config: TutorConfig) -> LLMProvider | None:
    """Create a model gateway adapter based on configuration.

    Returns:
        Provider instance, or None when ``llm.provider`` is "none"

    Raises:
        ValueError: If the selected provider has no configuration section
    """
    provider = config.llm.provider

    if provider == "groq":
        if not config.llm.groq:
            raise ValueError("Groq configuration required when provider is 'groq'")
        # Import here to avoid loading unnecessary dependencies
        from ai_code_tutor.adapters.llm.groq import GroqAdapter

        return GroqAdapter(config.llm.groq, retry_config=config.retry)

    if provider == "anthropic":
        if not config.llm.anthropic:
            raise ValueError("Anthropic configuration required when provider is 'anthropic'")
        from ai_code_tutor.adapters.llm.anthropic import AnthropicAdapter

        return AnthropicAdapter(config.llm.anthropic, retry_config=config.retry)

    return None
