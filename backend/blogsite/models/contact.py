from sqlalchemy import Column, DateTime, String, Text

from .base import Base, UUIDMixin, utcnow


class ContactMessage(Base, UUIDMixin):
    __tablename__ = "contact_messages"

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
