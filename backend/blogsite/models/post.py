from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, UUIDMixin, utcnow


class BlogPost(Base, UUIDMixin, TimestampMixin):
    """Blog post. ``author_id`` is written once at creation."""
    __tablename__ = "blog_posts"

    title = Column(String(255), nullable=False, index=True)
    description = Column(String(1000), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    # Either a legacy bare storage id (str) or {"url": ..., "storage_id": ...}
    image = Column(JSON, nullable=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    author = relationship("User", back_populates="posts")
    likes = relationship(
        "BlogPostLike",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="BlogPostLike.created_at",
    )
    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )


class BlogPostLike(Base, UUIDMixin):
    """One row per (post, user); the unique constraint gives the like set its set semantics."""
    __tablename__ = "blog_post_likes"

    post_id = Column(Uuid(as_uuid=True), ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    post = relationship("BlogPost", back_populates="likes")

    __table_args__ = (UniqueConstraint("post_id", "user_id", name="blog_post_likes_unique"),)


class Comment(Base, UUIDMixin):
    """Comment on a post. ``name`` is the author's display name at write time."""
    __tablename__ = "blog_comments"

    post_id = Column(Uuid(as_uuid=True), ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    name = Column(String(100), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    post = relationship("BlogPost", back_populates="comments")
