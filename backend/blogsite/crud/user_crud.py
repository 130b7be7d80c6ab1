import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseCRUD
from ..models.user import User

logger = logging.getLogger(__name__)


class UserCRUD(BaseCRUD[User, dict, dict]):
    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalars().first()

    async def get_by_google_id(self, db: AsyncSession, google_id: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.google_id == google_id))
        return result.scalars().first()

    async def create_user(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password_hash: Optional[str] = None,
        google_id: Optional[str] = None,
        profile_picture: Optional[str] = None
    ) -> User:
        user = await self.create(db, {
            "name": name,
            "email": email.lower(),
            "password_hash": password_hash,
            "google_id": google_id,
            "profile_picture": profile_picture,
        })
        logger.info(f"User created: user_id={user.id}, google={google_id is not None}")
        return user


user_crud = UserCRUD(User)
