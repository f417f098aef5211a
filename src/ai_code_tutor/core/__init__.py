"""Core engine components.

This module exports the main engine classes:
- TutorEngine: Caller-facing facade, built by create_engine
- ExecutionOrchestrator: Runs the tier chain and merges diagnostics
- DiagnosticScanner: Static bug-signature scanner
- PatchApplier: Applies line-addressed fixes
- MistakeTracker: Persistent mistake histogram
- RunHistory: Recent run ring buffer
- Explainer / HeuristicFixer: Explanations and proposed fixes
- Translator: Foreign-language to Java translation
"""

from ai_code_tutor.core.engine import TutorEngine, create_engine
from ai_code_tutor.core.explainer import Explainer, HeuristicFixer
from ai_code_tutor.core.history import RunHistory
from ai_code_tutor.core.interpreter import MiniInterpreter
from ai_code_tutor.core.mistake_tracker import MistakeTracker
from ai_code_tutor.core.orchestrator import ExecutionOrchestrator
from ai_code_tutor.core.patcher import PatchApplier
from ai_code_tutor.core.scanner import DiagnosticScanner
from ai_code_tutor.core.tiers import (
    AISimulatedCompilerTier,
    ExecutionTier,
    LocalSimulationTier,
    RemoteSandboxTier,
)
from ai_code_tutor.core.translator import Translator

__all__ = [
    "AISimulatedCompilerTier",
    "DiagnosticScanner",
    "ExecutionOrchestrator",
    "ExecutionTier",
    "Explainer",
    "HeuristicFixer",
    "LocalSimulationTier",
    "MiniInterpreter",
    "MistakeTracker",
    "PatchApplier",
    "RemoteSandboxTier",
    "RunHistory",
    "Translator",
    "TutorEngine",
    "create_engine",
]
