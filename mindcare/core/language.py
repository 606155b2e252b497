"""Keyword-based language detection."""

import re
from typing import List, Tuple

from ..config.locales import DEFAULT_LANGUAGE, Language


# Evaluation order is significant: the first matching language wins.
LANGUAGE_PATTERNS: List[Tuple[Language, "re.Pattern[str]"]] = [
    (
        Language.EN,
        re.compile(r"\b(hello|hi|how|why|what|where|who|when|is|are|the|this)\b", re.IGNORECASE),
    ),
    (
        Language.FR,
        re.compile(
            r"\b(bonjour|salut|comment|pourquoi|quoi|où|qui|quand|est|sont|le|la|les|ce|cette)\b",
            re.IGNORECASE,
        ),
    ),
    (
        Language.ES,
        re.compile(
            r"\b(hola|como|por qué|qué|dónde|quién|cuándo|es|son|el|la|los|este|esta)\b",
            re.IGNORECASE,
        ),
    ),
    (
        Language.IT,
        re.compile(
            r"\b(ciao|come|perché|cosa|dove|chi|quando|è|sono|il|la|i|questo|questa)\b",
            re.IGNORECASE,
        ),
    ),
    (
        Language.DE,
        re.compile(
            r"\b(hallo|wie|warum|was|wo|wer|wann|ist|sind|der|die|das|dieser|diese)\b",
            re.IGNORECASE,
        ),
    ),
    (
        Language.AR,
        re.compile(r"\b(مرحبا|كيف|لماذا|ماذا|أين|من|متى|هو|هي|ال|هذا|هذه)\b", re.IGNORECASE),
    ),
]


def detect_language(text: str) -> Language:
    """Return the language of the first pattern matching text, or the default."""
    for language, pattern in LANGUAGE_PATTERNS:
        if pattern.search(text):
            return language
    return DEFAULT_LANGUAGE
