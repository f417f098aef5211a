"""Recent run history, newest first."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from pydantic import TypeAdapter, ValidationError

from ai_code_tutor.interfaces.storage import KeyValueStore
from ai_code_tutor.models.compilation import CompilationResult
from ai_code_tutor.models.history import RunRecord
from ai_code_tutor.utils.logging import LogEventNames

log = structlog.get_logger()

STORAGE_KEY = "compile_history"
DEFAULT_LIMIT = 20

_RECORDS = TypeAdapter(list[RunRecord])


class RunHistory:
    """Bounded ring of past runs persisted in a KeyValueStore.

    Example:
        history = RunHistory(MemoryStore())
        history.record(source_text, result)
        latest = history.records()[0]
    """

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_LIMIT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._store = store
        self._limit = limit
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def limit(self) -> int:
        return self._limit

    def record(self, source_text: str, result: CompilationResult) -> RunRecord:
        """Prepend a run and drop the oldest entries beyond the limit.

        Args:
            source_text: Program that was run.
            result: Merged result of the run.

        Returns:
            The stored record.

        Raises:
            StorageError: If the store cannot persist the history.
        """
        succeeded = result.exit_code == 0
        entry = RunRecord(
            id=uuid.uuid4().hex,
            timestamp=self._clock(),
            status="done" if succeeded and not result.diagnostics else "error",
            source_text=source_text,
            stdout=result.output_text if succeeded else None,
            compiler_error=None if succeeded else result.output_text,
            diagnostics=result.diagnostics,
        )
        records = [entry, *self.records()][: self._limit]
        self._store.set(STORAGE_KEY, _RECORDS.dump_json(records).decode())
        return entry

    def records(self) -> list[RunRecord]:
        raw = self._store.get(STORAGE_KEY)
        if not raw:
            return []
        try:
            return _RECORDS.validate_json(raw)
        except ValidationError as e:
            log.warning(LogEventNames.STATE_CORRUPTED, key=STORAGE_KEY, error=str(e))
            self._store.remove(STORAGE_KEY)
            return []

    def clear(self) -> None:
        self._store.remove(STORAGE_KEY)
