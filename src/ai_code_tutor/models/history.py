"""Data models for the run history ring buffer."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from .diagnostic import Diagnostic


@dataclass(frozen=True)
class RunRecord:
    """One past run, as shown in the learner's history."""

    id: str
    timestamp: datetime
    status: Literal["done", "error"]
    source_text: str
    stdout: str | None
    compiler_error: str | None
    diagnostics: tuple[Diagnostic, ...] = ()
