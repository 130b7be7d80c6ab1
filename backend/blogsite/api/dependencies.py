from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ForbiddenException, UnauthorizedException
from ..core.security import verify_token
from ..database.session import get_db
from ..models.user import User
from ..services.auth_service import auth_service

security = HTTPBearer(auto_error=False)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthorizedException("Not authenticated")

    try:
        payload = verify_token(credentials.credentials)
    except JWTError:
        raise UnauthorizedException("Invalid or expired token")

    subject = payload.get("sub")
    if subject is None:
        raise UnauthorizedException("Invalid or expired token")

    return await auth_service.resolve_user(db, subject)


async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.email.lower() not in settings.ADMIN_EMAILS:
        raise ForbiddenException("Admin access required", code="not_admin")
    return current_user
