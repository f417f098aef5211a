"""Secret redaction and service URL validation.

Learner programs, compiler output and model responses all pass through the
logs. Anything that looks like a credential is redacted before it is
written, and redaction fails closed: a broken pattern raises instead of
letting text through unfiltered.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

import structlog

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


ALLOWED_URL_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True)
class SecretPattern:
    """One kind of credential and the regex that finds it."""

    name: str
    regex: str
    ignore_case: bool = False

    def compile(self) -> re.Pattern[str]:
        return re.compile(self.regex, re.IGNORECASE if self.ignore_case else 0)


class SecretRedactor:
    """Detects and redacts secrets from text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)
    """

    DEFAULT_PATTERNS: tuple[SecretPattern, ...] = (
        SecretPattern(
            "Generic secret",
            r"(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            ignore_case=True,
        ),
        SecretPattern("Bearer authorization", r"bearer\s+[\w.-]{16,}", ignore_case=True),
        # Model gateways
        SecretPattern("Groq API key", r"gsk_[a-zA-Z0-9]{20,}"),
        SecretPattern("Anthropic API key", r"sk-ant-[\w-]{20,}"),
        SecretPattern("OpenAI project API key", r"sk-proj-[a-zA-Z0-9_-]{20,}"),
        SecretPattern("OpenAI legacy API key", r"sk-[a-zA-Z0-9]{48}"),
        # Supabase and other JWT bearers
        SecretPattern("JWT", r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*"),
        SecretPattern(
            "Database connection string",
            r"(postgres(?:ql)?|mysql|mongodb(?:\+srv)?|redis)://[^:\s]+:[^@\s]+@[^\s]+",
            ignore_case=True,
        ),
        SecretPattern("Private key header", r"-----BEGIN (?:RSA |EC |OPENSSH )?PRIVATE KEY-----"),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Iterable[SecretPattern | tuple[str, str]] = (),
    ) -> None:
        """
        Args:
            placeholder: Replacement for every detected secret.
            custom_patterns: Extra SecretPattern objects or ``(regex, name)`` pairs.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        extra = (
            p if isinstance(p, SecretPattern) else SecretPattern(name=p[1], regex=p[0])
            for p in custom_patterns
        )
        self._patterns = (*self.DEFAULT_PATTERNS, *extra)
        self._compiled: list[tuple[str, re.Pattern[str]]] = []
        for pattern in self._patterns:
            try:
                self._compiled.append((pattern.name, pattern.compile()))
            except re.error as e:
                log.error("pattern_compilation_failed", pattern=pattern.name, error=str(e))
                raise RedactionError(f"Invalid secret pattern {pattern.name!r}: {e}") from e

    @property
    def patterns(self) -> tuple[SecretPattern, ...]:
        return self._patterns

    def detect(self, text: str) -> list[str]:
        """Names of the secret kinds present in ``text``."""
        if not text:
            return []
        return [name for name, compiled in self._compiled if compiled.search(text)]

    def has_secrets(self, text: str) -> bool:
        return bool(self.detect(text))

    def redact(self, text: str) -> str:
        """Replace every detected secret with the placeholder.

        Raises:
            RedactionError: If any substitution fails; no partially redacted text escapes.
        """
        if not text:
            return text
        try:
            for _, compiled in self._compiled:
                text = compiled.sub(self.placeholder, text)
        except Exception as e:
            raise RedactionError(f"Redaction failed: {e}") from e
        return text


def redact_outbound(redactor: SecretRedactor, text: str) -> str:
    """Redact text bound for a third-party service.

    Raises:
        SecurityError: If redaction fails; the text must then not be sent.
    """
    try:
        return redactor.redact(text)
    except RedactionError as e:
        log.error("redaction_failed_blocking_llm_call", error=str(e))
        raise SecurityError(f"Cannot send to LLM: redaction failed: {e}") from e


def validate_service_url(url: str) -> bool:
    """Validate that a configured service endpoint is a plain http(s) URL.

    Args:
        url: Endpoint from configuration

    Returns:
        True if the URL has an allowed scheme and a host
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ALLOWED_URL_SCHEMES and bool(parsed.hostname)
