"""
Comment Repository.

Persistence for `CommentRecord` rows on top of the async session factory in
`core.database`.

Every update is an optimistic compare-and-swap on the row's ``version``:
the caller's mutation is computed from a fresh snapshot and written with
``UPDATE ... WHERE id = :id AND version = :seen``. When another writer got
there first the statement matches no row, the snapshot is re-read and the
mutation re-applied, up to a bounded number of attempts. This keeps
read-modify-write sequences such as "add a dislike, count, maybe delete"
atomic per comment without holding database locks.
"""

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select

from core.database import async_session, session_scope
from core.exceptions import CommentDeletedError, CommentNotFoundError, ConcurrentUpdateError
from core.logging_config import get_logger
from core.models import CommentRecord, utcnow

logger = get_logger(__name__)

MAX_UPDATE_ATTEMPTS = 5

# Receives the current snapshot, returns the columns to change (None for no-op)
Mutation = Callable[[CommentRecord], Optional[Dict[str, Any]]]


class CommentRepository:
    """Stores and updates comments with version-checked writes"""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        max_attempts: int = MAX_UPDATE_ATTEMPTS,
    ):
        self.session_factory = session_factory or async_session
        self.max_attempts = max_attempts

    async def create(self, record: CommentRecord) -> CommentRecord:
        async with session_scope(self.session_factory) as session:
            session.add(record)
        logger.debug(f"Stored comment {record.id} for video {record.video_id}")
        return record

    async def get(self, comment_id: str) -> Optional[CommentRecord]:
        async with self.session_factory() as session:
            return await session.get(CommentRecord, comment_id)

    async def require(self, comment_id: str) -> CommentRecord:
        record = await self.get(comment_id)
        if record is None:
            raise CommentNotFoundError(comment_id)
        return record

    async def list_for_video(
        self, video_id: str, include_deleted: bool = False
    ) -> List[CommentRecord]:
        """Comments for a video, newest first"""
        statement = select(CommentRecord).where(CommentRecord.video_id == video_id)
        if not include_deleted:
            statement = statement.where(CommentRecord.is_deleted == False)  # noqa: E712
        statement = statement.order_by(CommentRecord.created_at.desc())

        async with self.session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def compare_and_update(self, comment_id: str, mutate: Mutation) -> CommentRecord:
        """
        Apply ``mutate`` to the latest snapshot and write it if nobody else
        changed the row in between.

        Returns the record as written (or the unchanged snapshot when the
        mutation returned no changes). Raises `CommentNotFoundError` if the
        row does not exist and `ConcurrentUpdateError` when every attempt lost
        the race. Exceptions raised by ``mutate`` propagate unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            snapshot = await self.require(comment_id)
            changes = mutate(snapshot)
            if not changes:
                return snapshot

            seen = snapshot.version
            now = utcnow()
            statement = (
                update(CommentRecord)
                .where(CommentRecord.id == comment_id, CommentRecord.version == seen)
                .values(**changes, version=seen + 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )

            async with session_scope(self.session_factory) as session:
                result = await session.execute(statement)

            if result.rowcount == 1:
                for column, value in changes.items():
                    setattr(snapshot, column, value)
                snapshot.version = seen + 1
                snapshot.updated_at = now
                return snapshot

            logger.debug(
                f"Version conflict on comment {comment_id} (attempt {attempt}/{self.max_attempts})"
            )

        logger.warning(f"Giving up on comment {comment_id} after {self.max_attempts} conflicts")
        raise ConcurrentUpdateError("comment", comment_id, self.max_attempts)

    async def set_translation(self, comment_id: str, language: str, text: str) -> CommentRecord:
        """Merge one translation into the comment's translation map"""

        def add_translation(record: CommentRecord) -> Optional[Dict[str, Any]]:
            if record.is_deleted:
                raise CommentDeletedError(record.id, record.deleted_reason)
            translations = dict(record.translations or {})
            if translations.get(language) == text:
                return None
            translations[language] = text
            return {"translations": translations}

        return await self.compare_and_update(comment_id, add_translation)

    async def set_language(self, comment_id: str, language: str) -> CommentRecord:
        def fill_language(record: CommentRecord) -> Optional[Dict[str, Any]]:
            if record.language:
                return None
            return {"language": language}

        return await self.compare_and_update(comment_id, fill_language)
