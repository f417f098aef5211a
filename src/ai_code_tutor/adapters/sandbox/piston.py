"""Piston remote execution adapter.

Piston compiles and runs a single file and answers with per-stage output:

    POST {"language": "java", "version": "15.0.2",
          "files": [{"name": "Main.java", "content": "..."}], "stdin": "..."}

    {"compile": {"output": "...", "code": 1}, "run": {"output": "...", "code": 0}}
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ...config.schema import SandboxConfig
from ...interfaces.sandbox import SandboxRequest, SandboxResponse, StageResult
from ...utils.async_helpers import SandboxError, SandboxTimeoutError, with_timeout

log = structlog.get_logger()


def _parse_stage(data: Any) -> StageResult | None:
    if not isinstance(data, dict):
        return None
    code = data.get("code")
    return StageResult(
        output=str(data.get("output") or ""),
        code=code if isinstance(code, int) else None,
        stderr=str(data.get("stderr") or ""),
    )


class PistonAdapter:
    """Sandbox adapter implementing the SandboxProvider protocol.

    Every request opens its own ``httpx.AsyncClient`` inside ``async with``
    and is bounded by a wall-clock timeout, so the client is closed on
    success, failure, timeout and cancellation alike.

    Example:
        adapter = PistonAdapter(SandboxConfig())
        response = await adapter.execute(request)
    """

    def __init__(
        self,
        config: SandboxConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Piston adapter.

        Args:
            config: Sandbox configuration (endpoint, language, timeout).
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self._config = config
        self._transport = transport

    @property
    def timeout(self) -> float:
        """Wall-clock limit in seconds applied to each request."""
        return self._config.timeout

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport) as client:
            return await client.post(self._config.url, json=payload)

    async def execute(self, request: SandboxRequest) -> SandboxResponse:
        """Compile and run source remotely.

        Args:
            request: Source, language and stdin to execute.

        Returns:
            Per-stage outputs and exit codes.

        Raises:
            SandboxTimeoutError: If the wall-clock limit is exceeded.
            SandboxError: On non-2xx responses, transport errors or malformed replies.
        """
        payload = {
            "language": request.language,
            "version": request.version,
            "files": [{"name": request.file_name, "content": request.content}],
            "stdin": request.stdin,
        }

        try:
            response = await with_timeout(
                self._post(payload),
                self._config.timeout,
                error_message=(
                    f"Execution timed out (limit: {self._config.timeout:g} seconds). "
                    "Infinite loop detected?"
                ),
                error_type=SandboxTimeoutError,
            )
        except httpx.HTTPError as e:
            log.warning("sandbox_transport_error", url=self._config.url, error=str(e))
            raise SandboxError(f"Sandbox transport error: {e}") from e

        if not response.is_success:
            log.warning("sandbox_http_error", status=response.status_code)
            raise SandboxError(f"Sandbox returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise SandboxError(f"Sandbox returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SandboxError("Sandbox returned a non-object body")

        run = _parse_stage(data.get("run"))
        compile_stage = _parse_stage(data.get("compile"))
        if run is None and compile_stage is None:
            message = data.get("message") or "no run or compile stage"
            raise SandboxError(f"Sandbox returned no result: {message}")

        return SandboxResponse(run=run, compile=compile_stage)
