"""
Text normalization for property and guest names.

Booking platforms, OCR and LLM output spell the same property in many
ways ("Apto 3B, Ed. Central", "apartamento 3b edificio central").
normalize() maps all of them to one canonical form:

- lowercase, trimmed
- Portuguese accents stripped (ã → a, ç → c, ...)
- punctuation replaced by spaces
- common address abbreviations expanded per whole token
- whitespace collapsed

The result is deterministic and idempotent: normalize(normalize(x)) == normalize(x).
"""

import re
import unicodedata
from typing import Any

# Explicit map for the accents seen in Portuguese/Spanish listings.
# Anything not listed here is handled by NFKD decomposition below.
ACCENT_MAP = {
    'á': 'a', 'à': 'a', 'â': 'a', 'ã': 'a', 'ä': 'a',
    'é': 'e', 'è': 'e', 'ê': 'e', 'ë': 'e',
    'í': 'i', 'ì': 'i', 'î': 'i', 'ï': 'i',
    'ó': 'o', 'ò': 'o', 'ô': 'o', 'õ': 'o', 'ö': 'o',
    'ú': 'u', 'ù': 'u', 'û': 'u', 'ü': 'u',
    'ç': 'c', 'ñ': 'n',
}

# Expansion values must never be keys themselves (keeps normalize idempotent)
ABBREVIATIONS = {
    'apt': 'apartamento',
    'apto': 'apartamento',
    'ed': 'edificio',
    'edf': 'edificio',
    'r': 'rua',
    'av': 'avenida',
    'avda': 'avenida',
    'n': 'numero',
    'num': 'numero',
    'pc': 'praca',
    'pca': 'praca',
    'lg': 'largo',
    'prd': 'predio',
    'qrt': 'quarto',
    'coz': 'cozinha',
}

_ACCENT_TABLE = str.maketrans(ACCENT_MAP)
_ORDINALS = str.maketrans({'º': ' ', 'ª': ' ', '°': ' '})
_NON_ALNUM = re.compile(r'[^a-z0-9\s]')
_WHITESPACE = re.compile(r'\s+')


def strip_accents(text: str) -> str:
    """Remove diacritics, using the explicit map first and NFKD for the rest."""
    text = text.translate(_ACCENT_TABLE)
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def expand_abbreviations(text: str) -> str:
    """Expand whole-token abbreviations in already-cleaned text."""
    return ' '.join(ABBREVIATIONS.get(token, token) for token in text.split())


def normalize(text: Any) -> str:
    """
    Canonicalize a free-text name.

    Args:
        text: Raw string (None and non-strings are tolerated)

    Returns:
        Normalized string, "" for None/empty input

    Examples:
        >>> normalize("São João do Estoril")
        'sao joao do estoril'
        >>> normalize("Apto 3B, Ed. Central")
        'apartamento 3b edificio central'
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    cleaned = text.lower().strip()
    if not cleaned:
        return ""

    # Ordinal indicators decompose to plain o/a under NFKD, so drop them first
    cleaned = cleaned.translate(_ORDINALS)
    cleaned = strip_accents(cleaned)

    cleaned = _NON_ALNUM.sub(' ', cleaned)
    cleaned = _WHITESPACE.sub(' ', cleaned).strip()

    return expand_abbreviations(cleaned)


def tokens(text: Any) -> list[str]:
    """Normalized tokens of a name."""
    normalized = normalize(text)
    return normalized.split() if normalized else []
