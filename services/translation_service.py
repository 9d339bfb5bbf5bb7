"""
Translation Cache Service.

Per-comment memoization of machine translations, keyed by target language and
stored on the comment itself (``CommentRecord.translations``).

``translate(comment, target)`` is lookup-or-fill:

1. A stored translation for the target is returned without a provider call.
2. Otherwise the source language is the comment's detected language, detected
   now (and remembered) when it is unknown.
3. Source equal to target returns the comment text untranslated.
4. Otherwise the provider is called once, under a timeout, and the result is
   merged into the comment's translation map.

Deleted comments are never translated (`CommentDeletedError`). Provider
failures surface as `TranslationError` and are never retried here.
Entries are never invalidated: comment text is immutable after moderation.
Two first-time requests for the same pair may both call the provider; the
version-checked merge keeps writes for other languages intact and the last
write for the same language wins.
"""

import asyncio
from typing import Dict, List, Optional

from core.cache import CacheManager, cache_key
from core.exceptions import CommentDeletedError, TranslationError
from core.logging_config import get_logger
from core.models import CommentRecord, TranslationResult
from core.validation import InputValidator
from providers.translation_provider import DEFAULT_LANGUAGES, TranslationProvider
from services.comment_repository import CommentRepository

logger = get_logger(__name__)

LANGUAGES_CACHE_KEY = cache_key("translation", "languages")
LANGUAGES_CACHE_TTL = 24 * 60 * 60


class TranslationCache:
    """Lookup-or-fill translation of stored comments"""

    def __init__(
        self,
        provider: TranslationProvider,
        repository: CommentRepository,
        cache: Optional[CacheManager] = None,
        timeout: float = 10.0,
    ):
        self.provider = provider
        self.repository = repository
        self.cache = cache
        self.timeout = timeout

    async def _call(self, coro, target_language: Optional[str] = None):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TranslationError(
                f"Provider timed out after {self.timeout}s", target_language
            ) from e

    async def translate(self, comment: CommentRecord, target_language: str) -> TranslationResult:
        if comment.is_deleted:
            raise CommentDeletedError(comment.id, comment.deleted_reason)

        target = InputValidator.validate_language_code(target_language)

        cached = (comment.translations or {}).get(target)
        if cached is not None:
            return TranslationResult(
                text=cached,
                target_language=target,
                source_language=comment.language,
                cached=True,
            )

        source = comment.language
        if not source:
            source = await self._call(self.provider.detect(comment.text), target)
            comment.language = source
            await self.repository.set_language(comment.id, source)

        if source.lower() == target.lower():
            return TranslationResult(
                text=comment.text,
                target_language=target,
                source_language=source,
                translated=False,
            )

        text = await self._call(self.provider.translate(comment.text, target, source), target)
        updated = await self.repository.set_translation(comment.id, target, text)
        comment.translations = dict(updated.translations or {})
        comment.version = updated.version

        logger.info(
            f"Translated comment {comment.id} from {source} to {target}",
            extra={"comment_id": comment.id, "source": source, "target": target},
        )
        return TranslationResult(text=text, target_language=target, source_language=source)

    async def translate_by_id(self, comment_id: str, target_language: str) -> TranslationResult:
        return await self.translate(await self.repository.require(comment_id), target_language)

    async def supported_languages(self) -> List[Dict[str, str]]:
        """Provider language list, falling back to the static list when unavailable"""

        async def fetch() -> List[Dict[str, str]]:
            if not self.provider.is_configured:
                return list(DEFAULT_LANGUAGES)
            try:
                languages = await self._call(self.provider.list_languages())
            except TranslationError as e:
                logger.warning(f"Using default language list: {e}")
                return list(DEFAULT_LANGUAGES)
            return languages or list(DEFAULT_LANGUAGES)

        if self.cache is None:
            return await fetch()
        return await self.cache.get_or_set(LANGUAGES_CACHE_KEY, fetch, ttl=LANGUAGES_CACHE_TTL)
