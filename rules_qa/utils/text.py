"""Text helpers shared by the in-memory search backend and the log formatter."""

from __future__ import annotations

import re
import unicodedata
from typing import Final, List

_WORD = re.compile(r"\w+", re.UNICODE)

# Leading elided articles/pronouns ("l'exclusion", "d'une", "qu'il").
_ELISION = re.compile(r"^(?:l|d|j|m|n|s|t|c|qu|jusqu|lorsqu|puisqu)['’]", re.IGNORECASE)

FRENCH_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        "a",
        "au",
        "aux",
        "avec",
        "ce",
        "ces",
        "dans",
        "de",
        "des",
        "du",
        "elle",
        "en",
        "est",
        "et",
        "il",
        "ils",
        "la",
        "le",
        "les",
        "leur",
        "lui",
        "ma",
        "mais",
        "me",
        "meme",
        "mes",
        "moi",
        "mon",
        "ne",
        "nos",
        "notre",
        "nous",
        "on",
        "ou",
        "par",
        "pas",
        "pour",
        "qu",
        "que",
        "quel",
        "quelle",
        "quels",
        "quelles",
        "qui",
        "sa",
        "se",
        "ses",
        "son",
        "sont",
        "sur",
        "ta",
        "te",
        "tes",
        "toi",
        "ton",
        "tu",
        "un",
        "une",
        "vos",
        "votre",
        "vous",
        "y",
    }
)


def fold_accents(text: str) -> str:
    """Lowercase ``text`` and drop combining marks (``durée`` -> ``duree``)."""

    if not text:
        return ""
    normalised = unicodedata.normalize("NFD", text.lower())
    return "".join(char for char in normalised if unicodedata.category(char) != "Mn")


def tokenize(text: str, *, keep_stopwords: bool = False) -> List[str]:
    """Split French text into folded terms, stripping elisions and stopwords."""

    if not text:
        return []
    raw = re.split(r"\s+", text.strip())
    terms: List[str] = []
    for word in raw:
        word = _ELISION.sub("", word)
        for token in _WORD.findall(fold_accents(word)):
            if not keep_stopwords and token in FRENCH_STOPWORDS:
                continue
            terms.append(token)
    return terms


def truncate(value: str, limit: int, *, suffix: str = "…") -> str:
    if limit <= 0 or len(value) <= limit:
        return value
    return value[:limit] + suffix
