import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ForbiddenException, NotFoundException, ValidationFailedException
from ..crud.post_crud import post_crud
from ..models.post import BlogPost, Comment
from ..models.user import User
from ..schemas.post import AuthorSummary, CommentResponse, PostResponse
from ..utils.ids import parse_id
from .storage_service import PostStorageService, storage_id_of

logger = logging.getLogger(__name__)

POST_FIELDS = ("title", "description", "content", "category")


@dataclass
class ImageUpload:
    data: bytes
    content_type: Optional[str]
    filename: Optional[str] = None


def to_comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=str(comment.id),
        user=str(comment.user_id),
        name=comment.name,
        text=comment.text,
        created_at=comment.created_at
    )


def to_post_response(post: BlogPost, storage: PostStorageService) -> PostResponse:
    """Expects author, likes and comments to be loaded."""
    likes = [str(like.user_id) for like in post.likes]
    return PostResponse(
        id=str(post.id),
        title=post.title,
        description=post.description,
        content=post.content,
        category=post.category,
        image=storage.resolve(post.image),
        author=AuthorSummary(
            id=str(post.author_id),
            name=post.author.name if post.author else "Unknown"
        ),
        likes=likes,
        like_count=len(likes),
        comments=[to_comment_response(c) for c in post.comments],
        created_at=post.created_at,
        updated_at=post.updated_at
    )


class PostService:
    """Create, edit and delete posts, keeping their images in step with storage."""

    async def get_post(self, db: AsyncSession, post_id: Any) -> BlogPost:
        post = await post_crud.get_with_relations(db, parse_id(post_id, "Blog"))
        if post is None:
            raise NotFoundException("Blog not found", code="not_found")
        return post

    async def list_posts(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[BlogPost]:
        search = search.strip() if search else None
        category = category.strip() if category else None
        return await post_crud.list_posts(db, search=search or None, category=category or None)

    def _ensure_owner(self, post: BlogPost, user: User, action: str):
        if post.author_id != user.id:
            logger.warning(f"Ownership check failed: post_id={post.id}, user_id={user.id}, action={action}")
            raise ForbiddenException(f"Not authorized to {action} this blog", code="not_owner")

    async def _schedule_removal(
        self,
        storage: PostStorageService,
        storage_id: Optional[str],
        background_tasks: Optional[BackgroundTasks]
    ):
        if not storage_id:
            return
        if background_tasks is not None:
            background_tasks.add_task(storage.remove, storage_id)
        else:
            await storage.remove(storage_id)

    async def create_post(
        self,
        db: AsyncSession,
        storage: PostStorageService,
        author: User,
        fields: Dict[str, Optional[str]],
        image: Optional[ImageUpload] = None
    ) -> BlogPost:
        missing = [name for name in POST_FIELDS if not (fields.get(name) or "").strip()]
        if missing:
            raise ValidationFailedException(
                f"Missing required fields: {', '.join(missing)}",
                code="missing_fields"
            )
        cleaned = {name: fields[name].strip() for name in POST_FIELDS}

        # Upload before persisting: a failed upload means no post at all
        image_ref = await storage.store(image.data, image.content_type) if image is not None else None

        try:
            post = await post_crud.create_post(
                db,
                cleaned,
                author_id=author.id,
                image=image_ref.model_dump() if image_ref else None
            )
            await db.commit()
        except Exception as e:
            logger.error(f"Post creation failed after upload, compensating: {e}")
            await db.rollback()
            if image_ref is not None:
                await storage.remove(image_ref.storage_id)
            raise

        return await self.get_post(db, post.id)

    async def update_post(
        self,
        db: AsyncSession,
        storage: PostStorageService,
        acting_user: User,
        post_id: Any,
        fields: Dict[str, Optional[str]],
        image: Optional[ImageUpload] = None,
        remove_image: bool = False,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> BlogPost:
        """
        Partial update. Blank or missing fields keep their current value.
        A new image wins over ``remove_image``; the replaced image is removed
        from storage only after the update is committed.
        """
        post = await self.get_post(db, post_id)
        self._ensure_owner(post, acting_user, "edit")

        changes: Dict[str, Any] = {
            name: value.strip()
            for name, value in fields.items()
            if name in POST_FIELDS and value is not None and value.strip()
        }

        old_storage_id = None
        new_ref = None
        if image is not None:
            new_ref = await storage.store(image.data, image.content_type)
            old_storage_id = storage_id_of(post.image)
            changes["image"] = new_ref.model_dump()
        elif remove_image:
            old_storage_id = storage_id_of(post.image)
            changes["image"] = None

        try:
            await post_crud.update(db, post, changes)
            await db.commit()
        except Exception as e:
            logger.error(f"Post update failed: post_id={post.id}, error={e}")
            await db.rollback()
            if new_ref is not None:
                await storage.remove(new_ref.storage_id)
            raise

        logger.info(f"Post updated: post_id={post.id}, fields={sorted(changes)}")
        await self._schedule_removal(storage, old_storage_id, background_tasks)
        return await self.get_post(db, post.id)

    async def delete_post(
        self,
        db: AsyncSession,
        storage: PostStorageService,
        acting_user: User,
        post_id: Any,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> None:
        post = await self.get_post(db, post_id)
        self._ensure_owner(post, acting_user, "delete")

        storage_id = storage_id_of(post.image)
        await post_crud.delete(db, post)
        await db.commit()

        logger.info(f"Post deleted: post_id={post_id}, had_image={storage_id is not None}")
        await self._schedule_removal(storage, storage_id, background_tasks)


post_service = PostService()
