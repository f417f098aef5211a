"""Data models for static and simulated diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Severity(StrEnum):
    """How serious a diagnostic is."""

    WARNING = "warning"
    ERROR = "error"


class ErrorCategory(StrEnum):
    """Closed error taxonomy.

    Values are stable: they key the educational content and UI colouring.
    """

    INTEGER_OVERFLOW = "INTEGER_OVERFLOW"
    NULL_POINTER = "NULL_POINTER"
    ARRAY_INDEX_OUT_OF_BOUNDS = "ARRAY_INDEX_OUT_OF_BOUNDS"
    INFINITE_RECURSION = "INFINITE_RECURSION"
    OFF_BY_ONE = "OFF_BY_ONE"
    DIVISION_BY_ZERO = "DIVISION_BY_ZERO"
    STRING_EQUALITY = "STRING_EQUALITY"
    OTHER_LOGICAL = "OTHER_LOGICAL"

    @classmethod
    def parse(cls, value: str | None) -> ErrorCategory:
        """Map a loosely spelled category onto the taxonomy.

        Unknown or missing values map to ``OTHER_LOGICAL``.
        """
        if not value:
            return cls.OTHER_LOGICAL
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        if key in cls.__members__:
            return cls[key]
        return _ALIASES.get(key, cls.OTHER_LOGICAL)


_ALIASES: dict[str, ErrorCategory] = {
    "POINTER_OUT_OF_BOUNDS": ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS,
    "OUT_OF_BOUNDS": ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS,
    "INDEX_OUT_OF_BOUNDS": ErrorCategory.ARRAY_INDEX_OUT_OF_BOUNDS,
    "NULL_DEREFERENCE": ErrorCategory.NULL_POINTER,
    "NULL_POINTER_EXCEPTION": ErrorCategory.NULL_POINTER,
    "STACK_OVERFLOW": ErrorCategory.INFINITE_RECURSION,
    "INFINITE_LOOP": ErrorCategory.INFINITE_RECURSION,
    "UNBOUNDED_RECURSION": ErrorCategory.INFINITE_RECURSION,
    "OVERFLOW": ErrorCategory.INTEGER_OVERFLOW,
    "DIVIDE_BY_ZERO": ErrorCategory.DIVISION_BY_ZERO,
    "STRING_IDENTITY_COMPARISON": ErrorCategory.STRING_EQUALITY,
    "STRING_COMPARISON": ErrorCategory.STRING_EQUALITY,
}


@dataclass(frozen=True)
class Diagnostic:
    """A single finding addressed to a line of the analysed document."""

    line: int  # 1-indexed, 0 = unknown
    message: str
    severity: Severity
    category: ErrorCategory = ErrorCategory.OTHER_LOGICAL

    def __post_init__(self) -> None:
        if self.line < 0:
            raise ValueError(f"Diagnostic line must be >= 0, got {self.line}")
