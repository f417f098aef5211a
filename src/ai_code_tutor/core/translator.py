"""Whole-program translation of foreign-language sources into Java."""

from __future__ import annotations

import structlog

from ai_code_tutor.adapters.llm.parsing import strip_code_fences
from ai_code_tutor.interfaces.llm import ChatMessage, LLMProvider
from ai_code_tutor.utils.async_helpers import ServiceError
from ai_code_tutor.utils.security import SecurityError

log = structlog.get_logger()

TRANSLATOR_SYSTEM_PROMPT = "You are a code translator. Output only Java code."

TRANSLATE_PROMPT = """Convert the following {language} code to valid, standard Java code.
Use a 'public class Main' and 'public static void main'.
Return ONLY the Java code. No markdown, no explanations.

CODE:
{code}"""

FALLBACK_TEMPLATE = """public class Main {
    public static void main(String[] args) {
        // Error: AI Service Unavailable for full translation.
        // Copy your logic here manually.
        System.out.println("Please check API connection.");
    }
}"""


class Translator:
    """Translate source code into a runnable Java ``Main`` class.

    Never raises for service failures: the learner gets a Java skeleton to
    fill in by hand instead.
    """

    def __init__(self, llm: LLMProvider | None = None) -> None:
        self._llm = llm

    def build_messages(self, text: str, from_language: str) -> list[ChatMessage]:
        return [
            {"role": "system", "content": TRANSLATOR_SYSTEM_PROMPT},
            {"role": "user", "content": TRANSLATE_PROMPT.format(language=from_language, code=text)},
        ]

    async def translate(self, text: str, from_language: str) -> str:
        """Translate ``text`` written in ``from_language`` to Java.

        Args:
            text: Source to translate.
            from_language: Display name of the source language, e.g. "Python".

        Returns:
            Java source, or FALLBACK_TEMPLATE if the translation failed.
        """
        if self._llm is None:
            return FALLBACK_TEMPLATE

        try:
            response = await self._llm.complete(
                self.build_messages(text, from_language), json_mode=False
            )
        except (ServiceError, SecurityError) as e:
            log.warning("translation_failed", language=from_language, error=str(e))
            return FALLBACK_TEMPLATE

        java = strip_code_fences(str(response)).strip()
        if not java:
            log.warning("translation_empty", language=from_language)
            return FALLBACK_TEMPLATE
        return java
