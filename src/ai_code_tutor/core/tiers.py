"""Execution tiers.

Each tier turns a RunRequest into either a CompilationResult (terminal) or a
TierFailure (recoverable, try the next tier). Tiers are tried in order by the
ExecutionOrchestrator:

1. RemoteSandboxTier - real javac/java through a sandbox service.
2. AISimulatedCompilerTier - an LLM asked to behave like the compiler.
3. LocalSimulationTier - MiniInterpreter, never fails.
"""

from __future__ import annotations

import json
from typing import Protocol

import structlog
from cachetools import TTLCache
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ai_code_tutor.config.schema import SandboxConfig
from ai_code_tutor.core.interpreter import MiniInterpreter
from ai_code_tutor.interfaces.llm import ChatMessage, LLMProvider
from ai_code_tutor.interfaces.sandbox import SandboxProvider, SandboxRequest
from ai_code_tutor.models.compilation import (
    Classification,
    CompilationResult,
    RunRequest,
    TierFailure,
)
from ai_code_tutor.models.diagnostic import Diagnostic, ErrorCategory, Severity
from ai_code_tutor.utils.async_helpers import SandboxTimeoutError, ServiceError

log = structlog.get_logger()

UNKNOWN_LANGUAGE = "Unknown"


class ExecutionTier(Protocol):
    """One strategy of the execution chain."""

    @property
    def name(self) -> str:
        """Stable tier identifier used in logs, metrics and results."""
        ...

    async def attempt(self, request: RunRequest) -> CompilationResult | TierFailure:
        """
        Try to compile and run the request.

        Args:
            request: Source document and stdin values

        Returns:
            A CompilationResult when this tier reached a verdict, or a
            TierFailure when the next tier should be tried. Recoverable
            service errors are returned, not raised.
        """
        ...


# =============================================================================
# Tier 1: remote sandbox
# =============================================================================


class RemoteSandboxTier:
    """Compile and run through a SandboxProvider.

    Output is passed through verbatim. The tier only distinguishes a
    compile failure from a run failure.
    """

    name = "remote-sandbox"

    def __init__(self, provider: SandboxProvider, config: SandboxConfig) -> None:
        self._provider = provider
        self._config = config

    async def attempt(self, request: RunRequest) -> CompilationResult | TierFailure:
        sandbox_request = SandboxRequest(
            language=self._config.language,
            version=self._config.version,
            file_name=self._config.file_name,
            content=request.source.text,
            stdin=request.stdin_text,
        )
        try:
            response = await self._provider.execute(sandbox_request)
        except SandboxTimeoutError as e:
            return TierFailure(tier=self.name, reason="timeout", hint=str(e))
        except ServiceError as e:
            return TierFailure(tier=self.name, reason="unavailable", details={"error": str(e)})

        compile_stage = response.compile
        if compile_stage is not None and compile_stage.code not in (0, None):
            return CompilationResult(
                output_text=compile_stage.output or compile_stage.stderr,
                exit_code=compile_stage.code,
                classification=Classification.ERROR,
                tier=self.name,
            )

        run = response.run
        if run is None:
            return TierFailure(tier=self.name, reason="malformed", details={"error": "no run stage"})
        if run.code is None:
            # Killed by a signal, which is what the sandbox does at its own time limit
            return TierFailure(
                tier=self.name,
                reason="timeout",
                hint=(
                    f"Execution timed out (limit: {self._provider.timeout:g} seconds). "
                    "Infinite loop detected?"
                ),
            )

        return CompilationResult(
            output_text=run.output,
            exit_code=run.code,
            classification=Classification.SUCCESS if run.code == 0 else Classification.ERROR,
            tier=self.name,
        )


# =============================================================================
# Tier 2: AI-simulated compiler
# =============================================================================

SIMULATOR_SYSTEM_PROMPT = "You are a precise Java compiler simulator. JSON only."

SIMULATOR_PROMPT = """You are a standard Java compiler (javac + java) runner.

STEP 1: DETECT LANGUAGE
Decide whether the code below is valid Java.
If it is clearly C, Python, JavaScript or another language, stop and return:
{{
    "output": "Detected [Language] code. This compiler only supports Java.",
    "exitCode": 1,
    "logicalErrors": [],
    "isForeignLanguage": true,
    "detectedLanguage": "[Language]"
}}

STEP 2: COMPILE AND EXECUTE
CODE:
{code}

{inputs}

INSTRUCTIONS:
1. Simulate javac. Report syntax errors exactly as javac would.
2. If it compiles, simulate java strictly.
3. Be careful with integer division.
4. Capture standard output (System.out.print/println/printf).
5. Detect logical errors such as null pointer exceptions or array index out of bounds.

RETURN JSON:
{{
    "output": "The exact stdout or compiler error message",
    "exitCode": 0,
    "logicalErrors": [
        {{
            "line": 1,
            "message": "Description",
            "severity": "warning" or "error",
            "errorType": "{categories}"
        }}
    ]
}}"""


class SimulatedDiagnostic(BaseModel):
    """Validated diagnostic from the simulated compiler."""

    model_config = ConfigDict(populate_by_name=True)

    line: int = Field(0, ge=0)
    message: str = Field(min_length=1, max_length=2000)
    severity: Severity
    error_type: str = Field("OTHER_LOGICAL", alias="errorType")

    @field_validator("severity", mode="before")
    @classmethod
    def _lowercase_severity(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            line=self.line,
            message=self.message,
            severity=self.severity,
            category=ErrorCategory.parse(self.error_type),
        )


class SimulatedRun(BaseModel):
    """Validated simulated compiler response."""

    model_config = ConfigDict(populate_by_name=True)

    output: str = Field(max_length=50000)
    exit_code: int = Field(alias="exitCode")
    logical_errors: list[SimulatedDiagnostic] = Field(default=[], alias="logicalErrors")
    is_foreign_language: bool = Field(False, alias="isForeignLanguage")
    detected_language: str | None = Field(None, alias="detectedLanguage")

    @field_validator("logical_errors", mode="before")
    @classmethod
    def _null_errors(cls, value: object) -> object:
        return [] if value is None else value


class AISimulatedCompilerTier:
    """Ask an LLM to emulate javac + java and report logical errors.

    Successful simulations are memoised per (source, stdin) so resubmitting
    an unchanged program does not spend another model call.
    """

    name = "ai-simulation"

    def __init__(
        self,
        llm: LLMProvider,
        cache_ttl: int = 300,
        cache_size: int = 64,
    ) -> None:
        """Initialize the tier.

        Args:
            llm: Provider used for the simulation.
            cache_ttl: Seconds a simulation stays cached. 0 disables caching.
            cache_size: Maximum number of cached simulations.
        """
        self._llm = llm
        self._cache: TTLCache[tuple[str, tuple[str, ...]], CompilationResult] | None = (
            TTLCache(maxsize=cache_size, ttl=cache_ttl) if cache_ttl > 0 else None
        )

    def build_messages(self, request: RunRequest) -> list[ChatMessage]:
        if request.stdin:
            inputs = f"User Inputs: {json.dumps(list(request.stdin))}"
        else:
            inputs = "No user inputs provided."
        prompt = SIMULATOR_PROMPT.format(
            code=request.source.text,
            inputs=inputs,
            categories='" | "'.join(category.value for category in ErrorCategory),
        )
        return [
            {"role": "system", "content": SIMULATOR_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    async def attempt(self, request: RunRequest) -> CompilationResult | TierFailure:
        key = (request.source.text, request.stdin)
        if self._cache is not None and key in self._cache:
            log.debug("simulation_cache_hit", tier=self.name)
            return self._cache[key]

        try:
            data = await self._llm.complete(self.build_messages(request), json_mode=True)
        except ServiceError as e:
            return TierFailure(tier=self.name, reason="unavailable", details={"error": str(e)})

        if not isinstance(data, dict):
            return TierFailure(tier=self.name, reason="malformed", details={"error": "not a JSON object"})
        try:
            simulated = SimulatedRun.model_validate(data)
        except ValidationError as e:
            log.warning("simulation_validation_error", error=str(e))
            return TierFailure(tier=self.name, reason="malformed", details={"error": str(e)})

        result = self._to_result(simulated)
        if self._cache is not None:
            self._cache[key] = result
        return result

    def _to_result(self, simulated: SimulatedRun) -> CompilationResult:
        if simulated.is_foreign_language:
            language = (simulated.detected_language or "").strip() or UNKNOWN_LANGUAGE
            return CompilationResult(
                output_text=simulated.output,
                exit_code=simulated.exit_code,
                classification=Classification.FOREIGN_LANGUAGE,
                detected_foreign_language=language,
                tier=self.name,
            )

        return CompilationResult(
            output_text=simulated.output,
            exit_code=simulated.exit_code,
            classification=(
                Classification.SUCCESS if simulated.exit_code == 0 else Classification.ERROR
            ),
            diagnostics=tuple(item.to_diagnostic() for item in simulated.logical_errors),
            tier=self.name,
        )


# =============================================================================
# Tier 3: local simulation
# =============================================================================


class LocalSimulationTier:
    """Terminal fallback. Always answers, always ``degraded``."""

    name = "local-simulation"

    def __init__(self, interpreter: MiniInterpreter | None = None) -> None:
        self._interpreter = interpreter or MiniInterpreter()

    async def attempt(self, request: RunRequest) -> CompilationResult:
        outcome = self._interpreter.run(request.source, request.stdin)
        return CompilationResult(
            output_text=outcome.output,
            exit_code=outcome.exit_code,
            classification=Classification.DEGRADED,
            tier=self.name,
        )
