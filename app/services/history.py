"""
History Service - Append-only generation and edit records.

Each record is committed on its own, as soon as the work it describes has
been delivered, so a later failure in the same request never removes it.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import Edit, Generation
from app.db.session import bind_row_owner
from app.exceptions import DatabaseError, WriteVerificationError
from app.models.domain import EditRecordData, GenerationRecordData

logger = get_logger(__name__)


class HistoryService:
    """Writes and lists history rows for one owner at a time."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record_generation(
        self,
        user_id: UUID,
        prompt: str,
        image_url: str,
        aspect_ratio: str,
        style: str,
        credits_used: int = 1,
    ) -> GenerationRecordData:
        """
        Persist one generated image.

        Raises:
            DatabaseError: Insert or commit failed
            WriteVerificationError: Row missing after insert
        """
        generation = Generation(
            user_id=user_id,
            prompt=prompt,
            image_url=image_url,
            aspect_ratio=aspect_ratio,
            style=style,
            credits_used=credits_used,
        )

        try:
            await bind_row_owner(self.session, user_id)
            self.session.add(generation)
            await self.session.flush()

            verified = await self.session.get(Generation, generation.id)
            if verified is None:
                raise WriteVerificationError(f"Generation {generation.id} not found after insert")

            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error("generation_record_failed", user_id=str(user_id), error=str(exc))
            await self.session.rollback()
            raise DatabaseError(str(exc)) from exc

        return self._generation_to_domain(verified)

    async def record_edit(
        self,
        user_id: UUID,
        original_image_url: str,
        edited_image_url: str,
        edit_type: str,
        credits_used: int = 1,
    ) -> EditRecordData:
        """
        Persist one edited image.

        Raises:
            DatabaseError: Insert or commit failed
            WriteVerificationError: Row missing after insert
        """
        edit = Edit(
            user_id=user_id,
            original_image_url=original_image_url,
            edited_image_url=edited_image_url,
            edit_type=edit_type,
            credits_used=credits_used,
        )

        try:
            await bind_row_owner(self.session, user_id)
            self.session.add(edit)
            await self.session.flush()

            verified = await self.session.get(Edit, edit.id)
            if verified is None:
                raise WriteVerificationError(f"Edit {edit.id} not found after insert")

            await self.session.commit()
        except SQLAlchemyError as exc:
            logger.error("edit_record_failed", user_id=str(user_id), error=str(exc))
            await self.session.rollback()
            raise DatabaseError(str(exc)) from exc

        return self._edit_to_domain(verified)

    async def list_generations(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[GenerationRecordData]:
        """Caller's generations, newest first."""
        await bind_row_owner(self.session, user_id)
        stmt = (
            select(Generation)
            .where(Generation.user_id == user_id)
            .order_by(Generation.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self._generation_to_domain(row) for row in result.scalars().all()]

    async def list_edits(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> list[EditRecordData]:
        """Caller's edits, newest first."""
        await bind_row_owner(self.session, user_id)
        stmt = (
            select(Edit)
            .where(Edit.user_id == user_id)
            .order_by(Edit.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [self._edit_to_domain(row) for row in result.scalars().all()]

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    def _generation_to_domain(self, generation: Generation) -> GenerationRecordData:
        return GenerationRecordData(
            generation_id=generation.id,
            user_id=generation.user_id,
            prompt=generation.prompt,
            image_url=generation.image_url,
            aspect_ratio=generation.aspect_ratio,
            style=generation.style,
            credits_used=generation.credits_used,
            created_at=generation.created_at,
        )

    def _edit_to_domain(self, edit: Edit) -> EditRecordData:
        return EditRecordData(
            edit_id=edit.id,
            user_id=edit.user_id,
            original_image_url=edit.original_image_url,
            edited_image_url=edit.edited_image_url,
            edit_type=edit.edit_type,
            credits_used=edit.credits_used,
            created_at=edit.created_at,
        )
