"""Data models for the mistake frequency histogram."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MistakeRecord:
    """How often the learner has tripped over one symbol."""

    symbol: str  # e.g. ";" or "}"
    count: int
    last_seen: datetime
