"""
Unit tests for the translation cache.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock

from core.exceptions import CommentDeletedError, TranslationError, ValidationError
from core.models import CommentRecord
from providers.translation_provider import DEFAULT_LANGUAGES
from services.translation_service import TranslationCache


@pytest.fixture
def translator(mock_translation_provider, comment_repository, cache_manager):
    return TranslationCache(mock_translation_provider, comment_repository, cache=cache_manager, timeout=1.0)


async def stored_comment(repository, language="en", text="Great video"):
    return await repository.create(
        CommentRecord(video_id="v1", author_id="u1", text=text, original_text=text, language=language)
    )


class TestTranslate:
    """Test lookup-or-fill translation."""

    @pytest.mark.asyncio
    async def test_first_request_calls_provider_and_stores(self, translator, comment_repository, mock_translation_provider):
        comment = await stored_comment(comment_repository)
        mock_translation_provider.translate.return_value = "அருமையான வீடியோ"

        result = await translator.translate(comment, "ta")

        assert result.text == "அருமையான வீடியோ"
        assert result.cached is False
        assert result.translated is True
        assert result.source_language == "en"
        mock_translation_provider.translate.assert_awaited_once_with("Great video", "ta", "en")

        stored = await comment_repository.get(comment.id)
        assert stored.translations == {"ta": "அருமையான வீடியோ"}

    @pytest.mark.asyncio
    async def test_second_request_uses_cache(self, translator, comment_repository, mock_translation_provider):
        comment = await stored_comment(comment_repository)

        first = await translator.translate(comment, "hi")
        second = await translator.translate(comment, "hi")

        assert first.text == second.text == "translated text"
        assert second.cached is True
        assert mock_translation_provider.translate.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_survives_reload(self, translator, comment_repository, mock_translation_provider):
        comment = await stored_comment(comment_repository)
        await translator.translate_by_id(comment.id, "hi")

        result = await translator.translate_by_id(comment.id, "hi")

        assert result.cached is True
        assert mock_translation_provider.translate.await_count == 1

    @pytest.mark.asyncio
    async def test_same_language_returns_original(self, translator, comment_repository, mock_translation_provider):
        comment = await stored_comment(comment_repository, language="en")

        result = await translator.translate(comment, "en")

        assert result.text == "Great video"
        assert result.translated is False
        mock_translation_provider.translate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_language_is_detected_and_remembered(self, translator, comment_repository, mock_translation_provider):
        comment = await stored_comment(comment_repository, language=None)
        mock_translation_provider.detect.return_value = "ta"

        result = await translator.translate(comment, "ta")

        assert result.translated is False
        mock_translation_provider.detect.assert_awaited_once_with("Great video")
        assert (await comment_repository.get(comment.id)).language == "ta"

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, translator, comment_repository, mock_translation_provider):
        comment = await stored_comment(comment_repository)
        mock_translation_provider.translate.side_effect = TranslationError("quota exceeded", "ta")

        with pytest.raises(TranslationError):
            await translator.translate(comment, "ta")

        assert mock_translation_provider.translate.await_count == 1
        assert (await comment_repository.get(comment.id)).translations == {}

    @pytest.mark.asyncio
    async def test_provider_timeout_is_translation_error(self, comment_repository, mock_translation_provider):
        async def slow(*args):
            await asyncio.sleep(5)
            return "late"

        mock_translation_provider.translate = AsyncMock(side_effect=slow)
        translator = TranslationCache(mock_translation_provider, comment_repository, timeout=0.05)
        comment = await stored_comment(comment_repository)

        with pytest.raises(TranslationError):
            await translator.translate(comment, "ta")

    @pytest.mark.asyncio
    async def test_invalid_target_language(self, translator, comment_repository):
        comment = await stored_comment(comment_repository)
        with pytest.raises(ValidationError):
            await translator.translate(comment, "not a language")

    @pytest.mark.asyncio
    async def test_deleted_comment_is_not_translated(self, translator, comment_repository, mock_translation_provider):
        comment = await comment_repository.create(
            CommentRecord(
                video_id="v1", author_id="u1", text="Great video", original_text="Great video",
                language="en", translations={"hi": "बढ़िया वीडियो"},
                is_deleted=True, deleted_reason="auto_dislike",
            )
        )

        with pytest.raises(CommentDeletedError):
            await translator.translate_by_id(comment.id, "ta")
        with pytest.raises(CommentDeletedError):
            await translator.translate(comment, "hi")

        mock_translation_provider.translate.assert_not_awaited()
        stored = await comment_repository.get(comment.id)
        assert stored.translations == {"hi": "बढ़िया वीडियो"}

    @pytest.mark.asyncio
    async def test_deletion_during_translation_is_not_overwritten(self, translator, comment_repository):
        comment = await stored_comment(comment_repository)
        await comment_repository.compare_and_update(
            comment.id, lambda record: {"is_deleted": True, "deleted_reason": "manual"}
        )

        # The caller still holds the snapshot taken before the deletion
        with pytest.raises(CommentDeletedError):
            await translator.translate(comment, "ta")

        stored = await comment_repository.get(comment.id)
        assert stored.translations == {}
        assert stored.is_deleted is True


class TestSupportedLanguages:
    """Test the supported language list."""

    @pytest.mark.asyncio
    async def test_provider_list_is_cached(self, translator, mock_translation_provider):
        first = await translator.supported_languages()
        second = await translator.supported_languages()

        assert first == second == [{"code": "en", "name": "English"}]
        assert mock_translation_provider.list_languages.await_count == 1

    @pytest.mark.asyncio
    async def test_fallback_when_provider_fails(self, comment_repository, mock_translation_provider):
        mock_translation_provider.list_languages.side_effect = TranslationError("unavailable")
        translator = TranslationCache(mock_translation_provider, comment_repository)

        assert await translator.supported_languages() == DEFAULT_LANGUAGES

    @pytest.mark.asyncio
    async def test_fallback_when_not_configured(self, comment_repository, mock_translation_provider):
        mock_translation_provider.is_configured = False
        translator = TranslationCache(mock_translation_provider, comment_repository)

        languages = await translator.supported_languages()

        assert len(languages) == 20
        mock_translation_provider.list_languages.assert_not_awaited()
