from typing import List

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseCRUD
from ..models.contact import ContactMessage
from ..schemas.contact import ContactCreate


class ContactCRUD(BaseCRUD[ContactMessage, ContactCreate, dict]):

    async def list_newest_first(self, db: AsyncSession, skip: int = 0, limit: int = 100) -> List[ContactMessage]:
        result = await db.execute(
            select(ContactMessage)
            .order_by(desc(ContactMessage.created_at))
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())


contact_crud = ContactCRUD(ContactMessage)
