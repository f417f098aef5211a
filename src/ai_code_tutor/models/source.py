"""Immutable source document addressed by 1-indexed lines."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class SourceDocument:
    """An ordered, immutable sequence of source lines.

    Lines are stored 0-indexed and addressed 1-indexed. Every transformation
    returns a new document.
    """

    lines: tuple[str, ...]

    @classmethod
    def from_text(cls, text: str) -> SourceDocument:
        """Split text on newlines (``"a\\n"`` yields two lines, the last empty)."""
        return cls(tuple(text.split("\n")))

    @property
    def text(self) -> str:
        """The document joined back into a single string."""
        return "\n".join(self.lines)

    @property
    def line_count(self) -> int:
        """Number of lines, always ``len(text.split("\\n"))``."""
        return len(self.lines)

    def line(self, number: int) -> str:
        """Return line ``number`` (1-indexed).

        Raises:
            IndexError: If the line does not exist
        """
        if number < 1 or number > len(self.lines):
            raise IndexError(f"Line {number} out of range 1..{len(self.lines)}")
        return self.lines[number - 1]

    def replace_lines(
        self,
        start: int,
        end: int,
        replacement: Sequence[str],
    ) -> SourceDocument:
        """Replace lines ``start..end`` (1-indexed, inclusive) with ``replacement``.

        ``end == start - 1`` inserts before ``start`` without removing anything.
        """
        before = self.lines[: start - 1]
        after = self.lines[end:]
        return SourceDocument((*before, *replacement, *after))

    def __str__(self) -> str:
        return self.text
