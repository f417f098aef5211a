"""Persistent histogram of the learner's recurring syntax mistakes.

Compiler output is matched against a small set of signatures. Each matching
signature bumps its symbol's count by exactly one per observation, however
many times it occurs in the text.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ai_code_tutor.interfaces.storage import KeyValueStore
from ai_code_tutor.models.mistake import MistakeRecord
from ai_code_tutor.utils.logging import LogEventNames
from ai_code_tutor.utils.metrics import get_metrics

log = structlog.get_logger()

STORAGE_KEY = "mistake_counts"


def _expected(symbol: str, *words: str) -> re.Pattern[str]:
    """Match both ``';' expected`` (javac) and ``expected ';'`` (gcc) orderings."""
    quoted = re.escape(f"'{symbol}'")
    alternatives = "|".join([quoted, *words])
    return re.compile(
        rf"(?:{quoted}\s*expected)|(?:(?:expected|missing)\s*(?:{alternatives}))",
        re.IGNORECASE,
    )


MISTAKE_SIGNATURES: dict[str, re.Pattern[str]] = {
    ";": _expected(";", "semicolon"),
    "}": _expected("}", "brace", "curly"),
    "{": _expected("{"),
    ")": _expected(")", "parenthesis"),
    "(": _expected("("),
    '"': re.compile(
        r"(?:missing terminating|expected|unclosed)\s*(?:string|literal|quote|\")|not a statement",
        re.IGNORECASE,
    ),
    "[": _expected("[", "bracket"),
    "]": _expected("]", "bracket"),
    "#": re.compile(r"Preprocessor directive missing '#'", re.IGNORECASE),
}


class _StoredMistake(BaseModel):
    count: int = Field(ge=1)
    last_seen: datetime


_STATE = TypeAdapter(dict[str, _StoredMistake])

MistakeListener = Callable[[list[MistakeRecord]], None]


class MistakeTracker:
    """Count compiler-reported mistakes per symbol, persisted in a KeyValueStore.

    Every mutation is a whole-mapping read-modify-write, so concurrent
    writers resolve as last writer wins. Listeners registered with
    ``subscribe`` are called synchronously after each persisted change.

    Example:
        tracker = MistakeTracker(JsonFileStore(path))
        tracker.observe("Main.java:3: error: ';' expected")
        tracker.records()[0].symbol  # ";"
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] | None = None,
        signatures: dict[str, re.Pattern[str]] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        self._signatures = signatures if signatures is not None else MISTAKE_SIGNATURES
        self._listeners: list[MistakeListener] = []

    def observe(self, output_text: str) -> bool:
        """Record the mistakes found in compiler output.

        Args:
            output_text: Compiler or runtime output.

        Returns:
            True if at least one known signature matched.
        """
        if not output_text:
            return False

        matched = [
            symbol for symbol, pattern in self._signatures.items() if pattern.search(output_text)
        ]
        if not matched:
            return False

        state = self._load()
        now = self._clock()
        for symbol in matched:
            previous = state.get(symbol)
            state[symbol] = _StoredMistake(
                count=(previous.count if previous else 0) + 1,
                last_seen=now,
            )
        self._save(state)
        get_metrics().mistakes_observed.inc(len(matched))
        log.debug("mistakes_observed", symbols=matched)
        self._notify()
        return True

    def records(self) -> list[MistakeRecord]:
        """All tracked mistakes, most frequent first."""
        state = self._load()
        records = [
            MistakeRecord(symbol=symbol, count=entry.count, last_seen=entry.last_seen)
            for symbol, entry in state.items()
        ]
        return sorted(records, key=lambda record: record.count, reverse=True)

    def count(self, symbol: str) -> int:
        entry = self._load().get(symbol)
        return entry.count if entry else 0

    def reset(self, symbol: str) -> None:
        """Forget one symbol. Unknown symbols are ignored."""
        state = self._load()
        if symbol not in state:
            return
        del state[symbol]
        self._save(state)
        self._notify()

    def reset_all(self) -> None:
        self._store.remove(STORAGE_KEY)
        self._notify()

    def subscribe(self, listener: MistakeListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _load(self) -> dict[str, _StoredMistake]:
        raw = self._store.get(STORAGE_KEY)
        if not raw:
            return {}
        try:
            return _STATE.validate_json(raw)
        except ValidationError as e:
            log.warning(LogEventNames.STATE_CORRUPTED, key=STORAGE_KEY, error=str(e))
            self._store.remove(STORAGE_KEY)
            return {}

    def _save(self, state: dict[str, _StoredMistake]) -> None:
        payload = {
            symbol: {"count": entry.count, "last_seen": entry.last_seen.isoformat()}
            for symbol, entry in state.items()
        }
        self._store.set(STORAGE_KEY, json.dumps(payload))

    def _notify(self) -> None:
        if not self._listeners:
            return
        records = self.records()
        for listener in list(self._listeners):
            try:
                listener(records)
            except Exception as e:
                log.warning("mistake_listener_failed", error=str(e))
