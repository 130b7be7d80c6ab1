from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin, UUIDMixin


class User(Base, UUIDMixin, TimestampMixin):
    """Account record. Password is absent for Google-only accounts."""
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    google_id = Column(String(255), nullable=True, unique=True, index=True)
    profile_picture = Column(String(1024), nullable=True)

    posts = relationship("BlogPost", back_populates="author")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
