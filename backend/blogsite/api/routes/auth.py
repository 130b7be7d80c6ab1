import json
import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ...api.dependencies import get_current_user
from ...core.config import settings
from ...database.session import get_db
from ...models.user import User
from ...schemas.user import AuthResponse, LoginRequest, SignupRequest, UserEnvelope
from ...services.auth_service import (
    GoogleOAuthService,
    auth_service,
    get_google_oauth_service,
    to_public_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

OAUTH_STATE_KEY = "google_oauth_state"


def _failure_redirect() -> RedirectResponse:
    return RedirectResponse(
        url=f"{settings.FRONTEND_URL}/login?error=google-auth-failed",
        status_code=status.HTTP_302_FOUND
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, db: AsyncSession = Depends(get_db)):
    token, user = await auth_service.signup(db, payload.name, payload.email, payload.password)
    return AuthResponse(message="User registered successfully", token=token, user=to_public_user(user))


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    token, user = await auth_service.login(db, payload.email, payload.password)
    return AuthResponse(message="Login successful", token=token, user=to_public_user(user))


@router.get("/me", response_model=UserEnvelope)
async def me(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=to_public_user(current_user))


@router.get("/google")
async def google_login(
    request: Request,
    oauth: GoogleOAuthService = Depends(get_google_oauth_service)
):
    """Start the Google consent flow. The state is kept in the signed session cookie."""
    state = secrets.token_urlsafe(32)
    request.session[OAUTH_STATE_KEY] = state
    return RedirectResponse(url=oauth.build_authorize_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    oauth: GoogleOAuthService = Depends(get_google_oauth_service)
):
    expected_state = request.session.pop(OAUTH_STATE_KEY, None)

    if error:
        logger.warning(f"Google OAuth error received: {error}")
        return _failure_redirect()
    if not code:
        logger.warning("Google OAuth callback without authorization code")
        return _failure_redirect()
    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        logger.warning("Google OAuth state mismatch")
        return _failure_redirect()

    try:
        profile = await oauth.fetch_profile(code)
        token, user = await auth_service.external_login(db, profile)
    except Exception as e:
        logger.error(f"Google OAuth callback failed: {e}", exc_info=True)
        await db.rollback()
        return _failure_redirect()

    query = urlencode({
        "token": token,
        "user": json.dumps(to_public_user(user).model_dump()),
    })
    return RedirectResponse(
        url=f"{settings.FRONTEND_URL}/oauth-success?{query}",
        status_code=status.HTTP_302_FOUND
    )


@router.get("/oauth/success", response_model=UserEnvelope)
async def oauth_success(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=to_public_user(current_user))
