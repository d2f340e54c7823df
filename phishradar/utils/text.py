"""Text normalization helpers shared by the extractor and the rules."""

from __future__ import annotations

import math
import unicodedata
from collections import Counter
from typing import Iterable

# Cyrillic/Armenian characters and digits that read as Latin letters.
HOMOGLYPHS = {
    "а": "a",  # Cyrillic а
    "е": "e",  # Cyrillic е
    "о": "o",  # Cyrillic о
    "р": "p",  # Cyrillic р
    "с": "c",  # Cyrillic с
    "у": "y",  # Cyrillic у
    "х": "x",  # Cyrillic х
    "ѕ": "s",  # Cyrillic ѕ
    "і": "i",  # Cyrillic і
    "ј": "j",  # Cyrillic ј
    "ԁ": "d",  # Cyrillic ԁ
    "ɡ": "g",  # Latin script g
    "ո": "n",  # Armenian ո
    "ս": "u",  # Armenian ս
}

DIGIT_SUBSTITUTIONS = {
    "0": "o",
    "1": "l",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "@": "a",
    "$": "s",
}


def fold(text: str) -> str:
    """Lowercase and strip diacritics ("Xác thực" -> "xac thuc")."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return stripped.replace("đ", "d")


def normalize_homoglyphs(text: str, *, digits: bool = False) -> str:
    """Replace lookalike characters with their Latin equivalents."""
    result = []
    for char in text.lower():
        if char in HOMOGLYPHS:
            result.append(HOMOGLYPHS[char])
        elif digits and char in DIGIT_SUBSTITUTIONS:
            result.append(DIGIT_SUBSTITUTIONS[char])
        else:
            result.append(unicodedata.normalize("NFKC", char))
    return "".join(result)


def shannon_entropy(value: str) -> float:
    """Shannon entropy (bits per character) of ``value``."""
    if not value:
        return 0.0
    counts = Counter(value)
    total = len(value)
    return -sum((n / total) * math.log2(n / total) for n in counts.values())


def find_terms(text: str, terms: Iterable[str]) -> list[str]:
    """Return the terms present in ``text``, compared without diacritics.

    Matching is substring based, so "verify" also hits "verify-now". Terms are
    returned in their original spelling, deduplicated, in input order.
    """
    haystack = fold(text)
    if not haystack:
        return []
    found: list[str] = []
    seen: set[str] = set()
    for term in terms:
        folded = fold(term)
        if folded and folded not in seen and folded in haystack:
            seen.add(folded)
            found.append(term)
    return found


def longest_digit_run(value: str) -> int:
    longest = current = 0
    for char in value:
        if char.isdigit():
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest
