"""
Profanity masking for comment text.

Matched terms are replaced letter-for-letter with a placeholder character, so
the cleaned text keeps its length and word structure.
"""

import re
from typing import Iterable, Optional, Set

DEFAULT_WORDS: Set[str] = {
    "arse",
    "arsehole",
    "ass",
    "asshole",
    "bastard",
    "bitch",
    "bollocks",
    "bullshit",
    "crap",
    "cunt",
    "damn",
    "dick",
    "dickhead",
    "fuck",
    "fucker",
    "fucking",
    "motherfucker",
    "piss",
    "prick",
    "pussy",
    "shit",
    "slut",
    "twat",
    "wanker",
    "whore",
}


class ProfanityFilter:
    """Masks profane words with a placeholder character"""

    def __init__(self, words: Optional[Iterable[str]] = None, placeholder: str = "*"):
        self.placeholder = placeholder
        self._words: Set[str] = {w.lower() for w in (words if words is not None else DEFAULT_WORDS)}
        self._pattern = self._compile()

    def _compile(self) -> Optional[re.Pattern]:
        if not self._words:
            return None
        # Longest first so "fucking" wins over "fuck"
        alternatives = "|".join(
            re.escape(w) for w in sorted(self._words, key=len, reverse=True)
        )
        return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)

    def add_words(self, *words: str) -> None:
        self._words.update(w.lower() for w in words if w)
        self._pattern = self._compile()

    def is_profane(self, text: str) -> bool:
        return bool(self._pattern and self._pattern.search(text))

    def clean(self, text: str) -> str:
        if not self._pattern:
            return text
        return self._pattern.sub(lambda m: self.placeholder * len(m.group(0)), text)
