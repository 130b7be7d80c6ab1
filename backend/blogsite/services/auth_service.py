import logging
import uuid
from typing import Any, Dict, Tuple
from urllib.parse import urlencode

import httpx
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.exceptions import (
    ConflictException,
    InvalidCredentialsException,
    UnauthorizedException,
)
from ..core.security import create_access_token, dummy_password_hash, get_password_hash, verify_password
from ..crud.user_crud import user_crud
from ..models.user import User
from ..schemas.user import ExternalProfile, UserPublic

logger = logging.getLogger(__name__)


def to_public_user(user: User) -> UserPublic:
    return UserPublic(
        id=str(user.id),
        name=user.name,
        email=user.email,
        profile_picture=user.profile_picture or None
    )


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id)})


class AuthService:
    """Local credentials, token issuing and external identity linking."""

    async def signup(self, db: AsyncSession, name: str, email: str, password: str) -> Tuple[str, User]:
        if await user_crud.get_by_email(db, email):
            raise ConflictException("User already exists", code="email_taken")

        password_hash = await run_in_threadpool(get_password_hash, password)
        try:
            user = await user_crud.create_user(db, name=name, email=email, password_hash=password_hash)
            await db.commit()
        except IntegrityError:
            # lost a race against a concurrent signup with the same email
            await db.rollback()
            raise ConflictException("User already exists", code="email_taken")

        logger.info(f"Signup: user_id={user.id}")
        return issue_token(user), user

    async def login(self, db: AsyncSession, email: str, password: str) -> Tuple[str, User]:
        user = await user_crud.get_by_email(db, email)
        if user is None or not user.password_hash:
            # unknown and Google-only accounts pay the same bcrypt cost as a wrong password
            await run_in_threadpool(lambda: verify_password(password, dummy_password_hash()))
            raise InvalidCredentialsException()
        if not await run_in_threadpool(verify_password, password, user.password_hash):
            raise InvalidCredentialsException()

        logger.info(f"Login: user_id={user.id}")
        return issue_token(user), user

    async def resolve_user(self, db: AsyncSession, subject: Any) -> User:
        """Resolve a token subject to its user. Raises ``UnauthorizedException``."""
        try:
            user_id = uuid.UUID(str(subject))
        except ValueError:
            raise UnauthorizedException("Invalid token subject")
        user = await user_crud.get(db, user_id)
        if user is None:
            raise UnauthorizedException("User no longer exists")
        return user

    async def link_external_identity(self, db: AsyncSession, user: User, profile: ExternalProfile) -> User:
        """
        Attach a Google identity to an existing account. The account's email
        must match the provider's email, and an account already linked to a
        different Google identity is never overwritten.
        """
        if user.email.lower() != profile.email.lower():
            raise ConflictException("Email does not match the external identity", code="email_mismatch")
        if user.google_id and user.google_id != profile.provider_id:
            raise ConflictException("Account is linked to a different Google identity", code="already_linked")

        user.google_id = profile.provider_id
        if profile.picture and not user.profile_picture:
            user.profile_picture = profile.picture
        await db.flush()
        logger.info(f"Linked google identity to user: user_id={user.id}, google_id={profile.provider_id}")
        return user

    async def external_login(self, db: AsyncSession, profile: ExternalProfile) -> Tuple[str, User]:
        user = await user_crud.get_by_google_id(db, profile.provider_id)
        if user is None:
            user = await user_crud.get_by_email(db, profile.email)
            if user is not None:
                user = await self.link_external_identity(db, user, profile)
            else:
                user = await user_crud.create_user(
                    db,
                    name=profile.name,
                    email=profile.email,
                    google_id=profile.provider_id,
                    profile_picture=profile.picture
                )
        await db.commit()
        logger.info(f"External login: user_id={user.id}")
        return issue_token(user), user


class GoogleOAuthService:
    """Google OAuth 2.0 authorization-code flow."""

    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    user_info_url = "https://openidconnect.googleapis.com/v1/userinfo"

    def __init__(self):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.redirect_uri = settings.GOOGLE_REDIRECT_URI

    def build_authorize_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account",
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def get_access_token(self, code: str) -> str:
        async with httpx.AsyncClient(timeout=settings.OAUTH_HTTP_TIMEOUT) as client:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "authorization_code",
                    "client_id": self.client_id,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET.get_secret_value(),
                    "redirect_uri": self.redirect_uri,
                    "code": code,
                },
            )
            response.raise_for_status()
            access_token = response.json().get("access_token")
        if not access_token:
            raise UnauthorizedException("Google did not return an access token")
        return access_token

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=settings.OAUTH_HTTP_TIMEOUT) as client:
            response = await client.get(
                self.user_info_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            return response.json()

    def to_profile(self, user_info: Dict[str, Any]) -> ExternalProfile:
        """Accepts only verified Google accounts that expose an email."""
        if not user_info.get("sub") or not user_info.get("email"):
            raise UnauthorizedException("Google profile is missing id or email")
        if user_info.get("email_verified") is False:
            raise UnauthorizedException("Google email is not verified")
        email: str = user_info["email"]
        return ExternalProfile(
            provider_id=str(user_info["sub"]),
            email=email,
            name=user_info.get("name") or email.split("@")[0],
            picture=user_info.get("picture")
        )

    async def fetch_profile(self, code: str) -> ExternalProfile:
        access_token = await self.get_access_token(code)
        user_info = await self.get_user_info(access_token)
        return self.to_profile(user_info)


auth_service = AuthService()
google_oauth_service = GoogleOAuthService()


def get_google_oauth_service() -> GoogleOAuthService:
    return google_oauth_service
