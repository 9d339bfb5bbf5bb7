"""
Comment Service.

Orchestrates the comment lifecycle around the moderation pipeline and the
repository:

- `submit`: validate (rejections carry a machine-readable reason), clean,
  detect the language on a best-effort basis and store.
- `like` / `dislike`: toggles. Adding a like removes the user's dislike and
  vice versa. The dislike that brings the count to the threshold deletes the
  comment with reason ``auto_dislike``; the whole read-toggle-check-delete
  sequence is one version-checked write, so the deletion fires exactly once.
- `delete`: manual deletion by the author (reason ``manual``).
- `list_for_video`: visible comments for a video.

Deletion is one-way: reactions on a deleted comment raise
`CommentDeletedError` and nothing ever clears ``is_deleted``.
"""

import asyncio
from typing import Any, Dict, List, Optional

from core.exceptions import (
    CommentDeletedError,
    CommentPermissionError,
    CommentRejectedError,
)
from core.logging_config import get_logger, log_function_call
from core.models import CommentRecord, DeletionReason, Location, ReactionOutcome
from providers.translation_provider import TranslationProvider
from services.comment_repository import CommentRepository
from services.moderation_service import AutoDeletionRule, CommentModerationPipeline

logger = get_logger(__name__)


def _toggle(users: List[str], user_id: str) -> List[str]:
    if user_id in users:
        return [u for u in users if u != user_id]
    return users + [user_id]


class CommentService:
    """Moderated comment submission, reactions and deletion"""

    def __init__(
        self,
        repository: CommentRepository,
        pipeline: Optional[CommentModerationPipeline] = None,
        deletion_rule: Optional[AutoDeletionRule] = None,
        translation_provider: Optional[TranslationProvider] = None,
        detect_timeout: float = 10.0,
    ):
        self.repository = repository
        self.pipeline = pipeline or CommentModerationPipeline()
        self.deletion_rule = deletion_rule or AutoDeletionRule()
        self.translation_provider = translation_provider
        self.detect_timeout = detect_timeout

    async def submit(
        self,
        video_id: str,
        author_id: str,
        text: str,
        author_location: Optional[Location] = None,
    ) -> CommentRecord:
        verdict = self.pipeline.validate(text)
        if not verdict.ok:
            logger.info(
                f"Rejected comment from {author_id}: {verdict.reason}",
                extra={"video_id": video_id, "reason": verdict.reason},
            )
            raise CommentRejectedError(verdict.reason, verdict.message)

        cleaned = self.pipeline.clean(text)
        record = CommentRecord(
            video_id=video_id,
            author_id=author_id,
            text=cleaned,
            original_text=text,
            language=await self._detect_language(cleaned),
            author_location=author_location.model_dump() if author_location else None,
        )
        return await self.repository.create(record)

    async def _detect_language(self, text: str) -> Optional[str]:
        """Language of the text, or None when detection is unavailable"""
        if self.translation_provider is None or not self.translation_provider.is_configured:
            return None
        try:
            return await asyncio.wait_for(
                self.translation_provider.detect(text), timeout=self.detect_timeout
            )
        except Exception as e:
            # Detection is retried lazily on first translation
            logger.warning(f"Language detection failed: {e}")
            return None

    async def like(self, comment_id: str, user_id: str) -> ReactionOutcome:
        state: Dict[str, Any] = {}

        def toggle_like(record: CommentRecord) -> Dict[str, Any]:
            if record.is_deleted:
                raise CommentDeletedError(record.id, record.deleted_reason)
            likes = _toggle(list(record.likes or []), user_id)
            state["active"] = user_id in likes
            changes: Dict[str, Any] = {"likes": likes}
            if state["active"] and user_id in (record.dislikes or []):
                changes["dislikes"] = [u for u in record.dislikes if u != user_id]
            return changes

        record = await self.repository.compare_and_update(comment_id, toggle_like)
        return self._outcome(record, state["active"])

    async def dislike(self, comment_id: str, user_id: str) -> ReactionOutcome:
        state: Dict[str, Any] = {}

        def toggle_dislike(record: CommentRecord) -> Dict[str, Any]:
            if record.is_deleted:
                raise CommentDeletedError(record.id, record.deleted_reason)
            dislikes = _toggle(list(record.dislikes or []), user_id)
            added = user_id in dislikes
            state["active"] = added
            changes: Dict[str, Any] = {"dislikes": dislikes}
            if added and user_id in (record.likes or []):
                changes["likes"] = [u for u in record.likes if u != user_id]

            state["auto_deleted"] = self.deletion_rule.should_delete(
                len(dislikes), record.is_deleted, added
            )
            if state["auto_deleted"]:
                changes["is_deleted"] = True
                changes["deleted_reason"] = DeletionReason.AUTO_DISLIKE.value
            return changes

        record = await self.repository.compare_and_update(comment_id, toggle_dislike)
        if state["auto_deleted"]:
            logger.info(
                f"Comment {comment_id} auto-deleted after {record.dislike_count} dislikes",
                extra={"comment_id": comment_id, "dislikes": record.dislike_count},
            )
        return self._outcome(record, state["active"], auto_deleted=state["auto_deleted"])

    @log_function_call(logger)
    async def delete(self, comment_id: str, user_id: str) -> CommentRecord:
        """Delete a comment on behalf of its author"""

        def mark_deleted(record: CommentRecord) -> Dict[str, Any]:
            if record.author_id != user_id:
                raise CommentPermissionError(record.id, user_id)
            if record.is_deleted:
                raise CommentDeletedError(record.id, record.deleted_reason)
            return {"is_deleted": True, "deleted_reason": DeletionReason.MANUAL.value}

        return await self.repository.compare_and_update(comment_id, mark_deleted)

    async def list_for_video(self, video_id: str) -> List[CommentRecord]:
        return await self.repository.list_for_video(video_id)

    @staticmethod
    def _outcome(record: CommentRecord, active: bool, auto_deleted: bool = False) -> ReactionOutcome:
        return ReactionOutcome(
            comment_id=record.id,
            active=active,
            like_count=record.like_count,
            dislike_count=record.dislike_count,
            auto_deleted=auto_deleted,
            is_deleted=record.is_deleted,
            deleted_reason=record.deleted_reason,
        )
