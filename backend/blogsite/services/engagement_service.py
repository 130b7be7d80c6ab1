import logging
from typing import Any, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    TransientException,
    ValidationFailedException,
)
from ..crud.comment_crud import comment_crud
from ..crud.post_crud import post_crud
from ..models.post import Comment
from ..models.user import User
from ..utils.ids import parse_id

logger = logging.getLogger(__name__)

MAX_TOGGLE_ATTEMPTS = 3


class EngagementService:
    """Likes and comments on posts."""

    async def _require_post(self, db: AsyncSession, post_id: Any):
        pid = parse_id(post_id, "Blog")
        if not await post_crud.exists(db, pid):
            raise NotFoundException("Blog not found", code="not_found")
        return pid

    async def toggle_like(self, db: AsyncSession, user: User, post_id: Any) -> Tuple[bool, int]:
        """
        Flip the user's membership in the post's like set and return
        ``(liked, like_count)``.

        Delete-then-insert runs in one transaction against a unique
        (post, user) row, so two users liking at once cannot overwrite each
        other. If a concurrent toggle by the same user wins the insert, the
        unique constraint fires and the toggle is replayed against the new
        state.
        """
        # rollback expires ``user``; only the plain id is safe to touch after it
        user_id = user.id
        for attempt in range(1, MAX_TOGGLE_ATTEMPTS + 1):
            pid = await self._require_post(db, post_id)
            try:
                removed = await post_crud.remove_like(db, pid, user_id)
                if not removed:
                    await post_crud.add_like(db, pid, user_id)
                like_count = await post_crud.count_likes(db, pid)
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                logger.info(f"Like toggle conflict, retrying: post_id={pid}, user_id={user_id}, attempt={attempt}, error={e}")
                continue

            liked = not removed
            logger.info(f"Like toggled: post_id={pid}, user_id={user_id}, liked={liked}, count={like_count}")
            return liked, like_count

        logger.error(f"Like toggle gave up after {MAX_TOGGLE_ATTEMPTS} attempts: post_id={post_id}, user_id={user_id}")
        raise TransientException()

    async def add_comment(self, db: AsyncSession, user: User, post_id: Any, text: str) -> Comment:
        text = (text or "").strip()
        if not text:
            raise ValidationFailedException("Comment text is required", code="empty_comment")

        pid = await self._require_post(db, post_id)
        comment = await comment_crud.append(db, post_id=pid, user_id=user.id, name=user.name, text=text)
        await db.commit()
        logger.info(f"Comment added: post_id={pid}, comment_id={comment.id}, user_id={user.id}")
        return comment

    async def delete_comment(self, db: AsyncSession, user: User, post_id: Any, comment_id: Any) -> None:
        pid = parse_id(post_id, "Blog")
        cid = parse_id(comment_id, "Comment")
        comment = await comment_crud.get_on_post(db, pid, cid)
        if comment is None:
            raise NotFoundException("Comment not found", code="not_found")
        if comment.user_id != user.id:
            raise ForbiddenException("Not authorized to delete this comment", code="not_owner")

        await comment_crud.delete(db, comment)
        await db.commit()
        logger.info(f"Comment deleted: post_id={pid}, comment_id={cid}, user_id={user.id}")


engagement_service = EngagementService()
