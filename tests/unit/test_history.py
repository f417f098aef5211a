"""Tests for the run history."""

from datetime import UTC, datetime, timedelta

import pytest

from ai_code_tutor.adapters.storage.memory import MemoryStore
from ai_code_tutor.core.history import DEFAULT_LIMIT, STORAGE_KEY, RunHistory
from ai_code_tutor.models.compilation import Classification, CompilationResult
from ai_code_tutor.models.diagnostic import Diagnostic, ErrorCategory, Severity


class TickingClock:
    """Clock advancing one second per call."""

    def __init__(self) -> None:
        self._now = datetime(2026, 3, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@pytest.fixture
def history(store: MemoryStore) -> RunHistory:
    return RunHistory(store, clock=TickingClock())


def error_result(output: str = "Main.java:3: error: ';' expected") -> CompilationResult:
    return CompilationResult(output_text=output, exit_code=1, classification=Classification.ERROR)


class TestRunHistory:
    """Test recording and reading runs."""

    def test_default_limit(self, history: RunHistory) -> None:
        """Test the default ring size."""
        assert history.limit == DEFAULT_LIMIT == 20

    def test_invalid_limit(self, store: MemoryStore) -> None:
        """Test a non-positive limit is rejected."""
        with pytest.raises(ValueError):
            RunHistory(store, limit=0)

    def test_success_record(self, history: RunHistory, success_result) -> None:
        """Test a clean run is stored as done with its stdout."""
        entry = history.record("class Main {}", success_result)

        assert entry.status == "done"
        assert entry.stdout == "Hello, World!"
        assert entry.compiler_error is None
        assert history.records() == [entry]

    def test_error_record(self, history: RunHistory) -> None:
        """Test a failing run is stored with its compiler error."""
        entry = history.record("code", error_result())
        assert entry.status == "error"
        assert entry.stdout is None
        assert entry.compiler_error == "Main.java:3: error: ';' expected"

    def test_diagnostics_mark_error(self, history: RunHistory, success_result) -> None:
        """Test a run that exits 0 with diagnostics still counts as an error."""
        flagged = success_result.with_diagnostics(
            [
                Diagnostic(
                    line=4,
                    message="off by one",
                    severity=Severity.WARNING,
                    category=ErrorCategory.OFF_BY_ONE,
                )
            ]
        )
        entry = history.record("code", flagged)
        assert entry.status == "error"
        assert entry.stdout == "Hello, World!"

    def test_round_trip_keeps_diagnostics(self, history: RunHistory, store: MemoryStore) -> None:
        """Test diagnostics survive persistence."""
        diagnostic = Diagnostic(
            line=7,
            message="Array index out of bounds. Array size 5, accessed index 5.",
            severity=Severity.ERROR,
            category=ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS,
        )
        history.record("code", error_result().with_diagnostics([diagnostic]))

        [entry] = RunHistory(store).records()
        assert entry.diagnostics == (diagnostic,)

    def test_newest_first_and_bounded(self, store: MemoryStore) -> None:
        """Test the ring keeps only the most recent entries."""
        history = RunHistory(store, limit=3, clock=TickingClock())
        for i in range(5):
            history.record(f"run {i}", error_result())

        records = history.records()

        assert [r.source_text for r in records] == ["run 4", "run 3", "run 2"]
        assert records[0].timestamp > records[1].timestamp

    def test_twenty_one_runs_keep_twenty(self, history: RunHistory, success_result) -> None:
        """Test the default limit drops the oldest run."""
        for i in range(21):
            history.record(f"run {i}", success_result)
        records = history.records()
        assert len(records) == 20
        assert records[-1].source_text == "run 1"

    def test_unique_ids(self, history: RunHistory, success_result) -> None:
        """Test every entry gets its own id."""
        first = history.record("a", success_result)
        second = history.record("a", success_result)
        assert first.id != second.id

    def test_clear(self, history: RunHistory, store: MemoryStore, success_result) -> None:
        """Test clearing removes the stored key."""
        history.record("a", success_result)
        history.clear()
        assert history.records() == []
        assert store.get(STORAGE_KEY) is None

    def test_corrupt_state(self, store: MemoryStore, success_result) -> None:
        """Test unreadable history is discarded and recording continues."""
        store.set(STORAGE_KEY, '[{"id": 1}]')
        history = RunHistory(store)

        assert history.records() == []
        assert store.get(STORAGE_KEY) is None

        history.record("a", success_result)
        assert len(history.records()) == 1
