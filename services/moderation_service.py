"""
Comment Moderation Pipeline.

Validation, cleaning and the auto-deletion rule for user comments.

Validation runs these checks in order and stops at the first failure:

1. Length: not empty or whitespace-only, at least 2 and at most 1000
   characters.
2. Special characters: no run of 6+ special characters and no more than 50%
   special characters overall.
3. Repetition: no character repeated 5+ times in a row.
4. Shouting: no more than 70% upper-case letters, checked only when the text
   has more than 5 Latin letters.
5. Links: no scheme prefixes, "www." or common TLD fragments.

A "special character" is anything that is not a word character, not
whitespace and not in one of the Indic script blocks (Devanagari through
Malayalam), so comments written in the supported regional scripts are never
penalized, including their combining vowel signs.

Cleaning strips control characters, masks profanity, collapses whitespace and
trims.
"""

import re
from enum import Enum
from typing import Optional

from core.logging_config import get_logger
from core.models import ModerationVerdict
from services.profanity_filter import ProfanityFilter

logger = get_logger(__name__)

MIN_LENGTH = 2
MAX_LENGTH = 1000
MAX_SPECIAL_RUN = 5
MAX_SPECIAL_RATIO = 0.5
MAX_REPEAT = 4
MAX_UPPERCASE_RATIO = 0.7
MIN_LETTERS_FOR_CAPS_CHECK = 5
AUTO_DELETE_DISLIKES = 2

# Devanagari, Bengali, Gurmukhi, Gujarati, Oriya, Tamil, Telugu, Kannada, Malayalam
SCRIPT_RANGES = (
    "\u0900-\u097F"
    "\u0980-\u09FF"
    "\u0A00-\u0A7F"
    "\u0A80-\u0AFF"
    "\u0B00-\u0B7F"
    "\u0B80-\u0BFF"
    "\u0C00-\u0C7F"
    "\u0C80-\u0CFF"
    "\u0D00-\u0D7F"
)
SPECIAL_CHAR = f"[^\\w\\s{SCRIPT_RANGES}]"

SPECIAL_CHAR_PATTERN = re.compile(SPECIAL_CHAR)
SPECIAL_RUN_PATTERN = re.compile(f"{SPECIAL_CHAR}{{{MAX_SPECIAL_RUN + 1},}}")
REPEATED_CHAR_PATTERN = re.compile(rf"(.)\1{{{MAX_REPEAT},}}")
UPPERCASE_PATTERN = re.compile(r"[A-Z]")
LETTER_PATTERN = re.compile(r"[a-zA-Z]")
URL_PATTERN = re.compile(r"(https?://|www\.|\.com|\.org|\.net)", re.IGNORECASE)
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
WHITESPACE_PATTERN = re.compile(r"\s+")


class ModerationReason(str, Enum):
    EMPTY = "empty"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    SPECIAL_CHARACTERS = "special_characters"
    REPEATED_CHARACTERS = "repeated_characters"
    EXCESSIVE_CAPS = "excessive_caps"
    LINK = "link"


def _reject(reason: ModerationReason, message: str, **details) -> ModerationVerdict:
    return ModerationVerdict(reason=reason.value, message=message, details=details)


class CommentModerationPipeline:
    """Validates and cleans comment text"""

    def __init__(self, profanity_filter: Optional[ProfanityFilter] = None):
        self.profanity_filter = profanity_filter or ProfanityFilter()

    def special_char_ratio(self, text: str) -> float:
        if not text:
            return 0.0
        return len(SPECIAL_CHAR_PATTERN.findall(text)) / len(text)

    def has_excessive_special_chars(self, text: str) -> bool:
        if SPECIAL_RUN_PATTERN.search(text):
            return True
        return self.special_char_ratio(text) > MAX_SPECIAL_RATIO

    def validate(self, text: Optional[str]) -> ModerationVerdict:
        if not text or not text.strip():
            return _reject(ModerationReason.EMPTY, "Comment cannot be empty")
        if len(text) > MAX_LENGTH:
            return _reject(
                ModerationReason.TOO_LONG,
                f"Comment must be at most {MAX_LENGTH} characters",
                length=len(text),
            )
        if len(text) < MIN_LENGTH:
            return _reject(
                ModerationReason.TOO_SHORT,
                f"Comment must be at least {MIN_LENGTH} characters",
                length=len(text),
            )

        if self.has_excessive_special_chars(text):
            return _reject(
                ModerationReason.SPECIAL_CHARACTERS,
                "Comment contains too many special characters",
                ratio=round(self.special_char_ratio(text), 3),
            )

        if REPEATED_CHAR_PATTERN.search(text):
            return _reject(
                ModerationReason.REPEATED_CHARACTERS,
                "Comment contains repeated characters",
            )

        letters = len(LETTER_PATTERN.findall(text))
        if letters > MIN_LETTERS_FOR_CAPS_CHECK:
            uppercase_ratio = len(UPPERCASE_PATTERN.findall(text)) / letters
            if uppercase_ratio > MAX_UPPERCASE_RATIO:
                return _reject(
                    ModerationReason.EXCESSIVE_CAPS,
                    "Comment uses too many capital letters",
                    ratio=round(uppercase_ratio, 3),
                )

        if URL_PATTERN.search(text):
            return _reject(ModerationReason.LINK, "Links are not allowed in comments")

        return ModerationVerdict()

    def clean(self, text: str) -> str:
        cleaned = CONTROL_CHAR_PATTERN.sub("", text)
        cleaned = self.profanity_filter.clean(cleaned)
        cleaned = WHITESPACE_PATTERN.sub(" ", cleaned)
        return cleaned.strip()


class AutoDeletionRule:
    """Deletes a comment once its dislikes reach the threshold"""

    def __init__(self, threshold: int = AUTO_DELETE_DISLIKES):
        self.threshold = threshold

    def should_delete(self, dislike_count: int, already_deleted: bool, dislike_added: bool) -> bool:
        """
        Evaluated once per dislike event. Removing a dislike never triggers
        deletion and deleted comments are not evaluated again.
        """
        if already_deleted or not dislike_added:
            return False
        return dislike_count >= self.threshold
