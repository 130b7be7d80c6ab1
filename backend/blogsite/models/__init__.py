from .base import Base
from .user import User
from .post import BlogPost, BlogPostLike, Comment
from .contact import ContactMessage

__all__ = [
    "Base",
    "User",
    "BlogPost",
    "BlogPostLike",
    "Comment",
    "ContactMessage",
]
