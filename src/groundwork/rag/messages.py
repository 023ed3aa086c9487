"""Refusal messages shared by the relevance gate and the prompt composer.

The generator is told to reply with exactly the same string the gate returns,
so callers can detect a refusal by string equality. Both sides read it from
REFUSALS; never duplicate the literal.
"""

from __future__ import annotations

from typing import Literal

Language = Literal["es", "en"]

DEFAULT_LANGUAGE: Language = "es"
LANGUAGES: tuple[str, ...] = ("es", "en")

REFUSALS: dict[str, str] = {
    "es": "No tengo evidencia suficiente para responder con certeza.",
    "en": "I don't have enough evidence to answer confidently.",
}


def resolve_language(value: str | None, default: str = DEFAULT_LANGUAGE) -> str:
    """Return *value* if it is a supported language, otherwise *default*."""
    if value and value.lower() in LANGUAGES:
        return value.lower()
    return default


def refusal_message(language: str) -> str:
    """Return the fixed refusal text for *language* (default language if unknown)."""
    return REFUSALS.get(language, REFUSALS[DEFAULT_LANGUAGE])


def is_refusal(answer: str) -> bool:
    """True if *answer* is, verbatim, one of the refusal messages."""
    return answer.strip() in REFUSALS.values()
