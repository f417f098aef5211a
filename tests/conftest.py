"""Shared test fixtures for AI Code Tutor."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ai_code_tutor.adapters.storage.memory import MemoryStore
from ai_code_tutor.models.compilation import Classification, CompilationResult, RunRequest
from ai_code_tutor.models.source import SourceDocument

# Get the fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"
SOURCES_DIR = FIXTURES_DIR / "sources"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def hello_world() -> str:
    """Load a minimal, correct Java program."""
    return (SOURCES_DIR / "HelloWorld.java").read_text()


@pytest.fixture
def off_by_one_program() -> str:
    """Load a Java program with an off-by-one array loop."""
    return (SOURCES_DIR / "OffByOne.java").read_text()


@pytest.fixture
def missing_semicolon_program() -> str:
    """Load a Java program missing a semicolon after a print."""
    return (SOURCES_DIR / "MissingSemicolon.java").read_text()


@pytest.fixture
def python_program() -> str:
    """Load a program written in Python rather than Java."""
    return (SOURCES_DIR / "not_java.py").read_text()


@pytest.fixture
def store() -> MemoryStore:
    """Return an empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def make_request():
    """Build a RunRequest from source text."""

    def _make(text: str, stdin: tuple[str, ...] = ()) -> RunRequest:
        return RunRequest(source=SourceDocument.from_text(text), stdin=stdin)

    return _make


@pytest.fixture
def success_result() -> CompilationResult:
    """A clean sandbox success."""
    return CompilationResult(
        output_text="Hello, World!",
        exit_code=0,
        classification=Classification.SUCCESS,
        tier="remote-sandbox",
    )


@pytest.fixture
def mock_llm():
    """Return an LLMProvider mock whose complete() is an AsyncMock."""

    def _make(response: Any = None, side_effect: Any = None) -> MagicMock:
        llm = MagicMock()
        llm.model_name = "test-model"
        llm.complete = AsyncMock(return_value=response, side_effect=side_effect)
        return llm

    return _make
