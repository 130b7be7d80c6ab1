import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseCRUD
from ..models.post import Comment


class CommentCRUD(BaseCRUD[Comment, dict, dict]):

    async def get_on_post(
        self,
        db: AsyncSession,
        post_id: uuid.UUID,
        comment_id: uuid.UUID
    ) -> Optional[Comment]:
        result = await db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.post_id == post_id)
        )
        return result.scalars().first()

    async def append(
        self,
        db: AsyncSession,
        post_id: uuid.UUID,
        user_id: uuid.UUID,
        name: str,
        text: str
    ) -> Comment:
        """Comments are appended as independent rows, so concurrent appends cannot clobber each other."""
        return await self.create(db, {
            "post_id": post_id,
            "user_id": user_id,
            "name": name,
            "text": text,
        })


comment_crud = CommentCRUD(Comment)
