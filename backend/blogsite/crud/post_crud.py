import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .base import BaseCRUD
from ..models.post import BlogPost, BlogPostLike

logger = logging.getLogger(__name__)


class PostCRUD(BaseCRUD[BlogPost, dict, dict]):

    def _with_relations(self):
        return select(BlogPost).options(
            selectinload(BlogPost.author),
            selectinload(BlogPost.likes),
            selectinload(BlogPost.comments),
        )

    async def get_with_relations(self, db: AsyncSession, post_id: uuid.UUID) -> Optional[BlogPost]:
        """Load a post together with its author, likes and comments."""
        result = await db.execute(
            self._with_relations()
            .where(BlogPost.id == post_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_posts(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[BlogPost]:
        """
        Newest first. ``search`` is a case-insensitive substring match on title
        or description; ``category`` is a case-insensitive exact match.
        Both filters are optional and combine with AND.
        """
        conditions = []
        if search:
            conditions.append(or_(
                BlogPost.title.icontains(search, autoescape=True),
                BlogPost.description.icontains(search, autoescape=True),
            ))
        if category:
            conditions.append(func.lower(BlogPost.category) == category.lower())

        stmt = self._with_relations().order_by(desc(BlogPost.created_at))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        result = await db.execute(stmt)
        posts = list(result.scalars().all())
        logger.debug(f"Listed {len(posts)} posts: search={search!r}, category={category!r}")
        return posts

    async def create_post(
        self,
        db: AsyncSession,
        fields: Dict[str, Any],
        author_id: uuid.UUID,
        image: Optional[Dict[str, str]] = None
    ) -> BlogPost:
        db_post = BlogPost(
            title=fields["title"],
            description=fields["description"],
            content=fields["content"],
            category=fields["category"],
            image=image,
            author_id=author_id
        )
        db.add(db_post)
        await db.flush()
        logger.info(f"Post created: post_id={db_post.id}, author_id={author_id}, has_image={image is not None}")
        return db_post

    async def exists(self, db: AsyncSession, post_id: uuid.UUID) -> bool:
        result = await db.execute(select(BlogPost.id).where(BlogPost.id == post_id))
        return result.first() is not None

    async def remove_like(self, db: AsyncSession, post_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """Delete the (post, user) like row. Returns whether a row was removed."""
        result = await db.execute(
            delete(BlogPostLike).where(
                BlogPostLike.post_id == post_id,
                BlogPostLike.user_id == user_id
            )
        )
        return result.rowcount > 0

    async def add_like(self, db: AsyncSession, post_id: uuid.UUID, user_id: uuid.UUID) -> BlogPostLike:
        """Insert a like row. Raises ``IntegrityError`` if the user already likes the post."""
        like = BlogPostLike(post_id=post_id, user_id=user_id)
        db.add(like)
        await db.flush()
        return like

    async def count_likes(self, db: AsyncSession, post_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count(BlogPostLike.id)).where(BlogPostLike.post_id == post_id)
        )
        return result.scalar() or 0


post_crud = PostCRUD(BlogPost)
