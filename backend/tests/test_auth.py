"""
Signup, login, bearer resolution and Google identity linking.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from blogsite.core.exceptions import ConflictException
from blogsite.core.security import create_access_token, dummy_password_hash
from blogsite.database.session import init_db
from blogsite.main import app
from blogsite.schemas.user import ExternalProfile
from blogsite.services import auth_service as auth_service_module
from blogsite.services.auth_service import GoogleOAuthService, auth_service, get_google_oauth_service

from conftest import bearer


class TestSignupAndLogin:

    def test_signup_returns_token_and_public_user(self, client):
        r = client.post("/api/auth/signup", json={
            "name": "Alice",
            "email": "Alice@BlogMail.com",
            "password": "secret123"
        })
        assert r.status_code == 201
        body = r.json()
        assert body["token"]
        assert body["user"]["name"] == "Alice"
        assert body["user"]["email"] == "alice@blogmail.com"
        assert "password_hash" not in body["user"]

    def test_duplicate_email_is_rejected_and_original_account_survives(self, client, api):
        api.signup("Alice", "alice@blogmail.com", "first-pass")

        r = client.post("/api/auth/signup", json={
            "name": "Impostor",
            "email": "alice@blogmail.com",
            "password": "second-pass"
        })
        assert r.status_code == 400
        assert r.json()["message"] == "User already exists"

        r = client.post("/api/auth/login", json={"email": "alice@blogmail.com", "password": "first-pass"})
        assert r.status_code == 200
        assert r.json()["user"]["name"] == "Alice"

    def test_short_password_is_a_validation_error(self, client):
        r = client.post("/api/auth/signup", json={"name": "Bob", "email": "bob@blogmail.com", "password": "123"})
        assert r.status_code == 400
        assert r.json()["error"] == "ValidationError"

    def test_login_failures_are_indistinguishable(self, client, api):
        api.signup("Alice", "alice@blogmail.com", "secret123")

        wrong_password = client.post("/api/auth/login", json={"email": "alice@blogmail.com", "password": "nope-nope"})
        unknown_email = client.post("/api/auth/login", json={"email": "ghost@blogmail.com", "password": "secret123"})

        assert wrong_password.status_code == 400
        assert unknown_email.status_code == 400
        assert wrong_password.json()["message"] == unknown_email.json()["message"]

    def test_unknown_email_still_runs_a_password_check(self, client, api, monkeypatch):
        checked = []
        real_verify = auth_service_module.verify_password

        def recording_verify(password, hashed):
            checked.append(hashed)
            return real_verify(password, hashed)

        monkeypatch.setattr(auth_service_module, "verify_password", recording_verify)
        r = client.post("/api/auth/login", json={"email": "ghost@blogmail.com", "password": "secret123"})

        assert r.status_code == 400
        assert checked == [dummy_password_hash()]


class TestBearerResolution:

    def test_me_requires_token(self, client):
        r = client.get("/api/auth/me")
        assert r.status_code == 401
        assert r.headers["WWW-Authenticate"] == "Bearer"

    def test_me_rejects_garbage_token(self, client):
        r = client.get("/api/auth/me", headers=bearer("not-a-jwt"))
        assert r.status_code == 401

    def test_me_rejects_expired_token(self, client, api):
        user_id = api.signup("Alice", "alice@blogmail.com")["user"]["id"]
        expired = create_access_token({"sub": user_id}, expires_minutes=-1)
        r = client.get("/api/auth/me", headers=bearer(expired))
        assert r.status_code == 401

    def test_me_rejects_token_for_unknown_user(self, client):
        token = create_access_token({"sub": "00000000-0000-0000-0000-000000000000"})
        r = client.get("/api/auth/me", headers=bearer(token))
        assert r.status_code == 401

    def test_me_returns_current_user(self, client, api):
        token = api.signup("Alice", "alice@blogmail.com")["token"]
        r = client.get("/api/auth/me", headers=bearer(token))
        assert r.status_code == 200
        assert r.json()["user"]["email"] == "alice@blogmail.com"


class TestExternalLogin:

    @pytest.mark.anyio
    async def test_first_google_login_creates_account(self, engine, session_factory):
        await init_db(engine)
        profile = ExternalProfile(provider_id="g-1", email="carol@blogmail.com", name="Carol")

        async with session_factory() as db:
            token, user = await auth_service.external_login(db, profile)
            assert token
            assert user.google_id == "g-1"
            assert user.password_hash is None

        async with session_factory() as db:
            _, again = await auth_service.external_login(db, profile)
            assert again.id == user.id
        await engine.dispose()

    @pytest.mark.anyio
    async def test_google_login_links_existing_local_account(self, engine, session_factory):
        await init_db(engine)
        async with session_factory() as db:
            _, local = await auth_service.signup(db, "Dave", "dave@blogmail.com", "secret123")

        profile = ExternalProfile(provider_id="g-2", email="DAVE@blogmail.com", name="Dave G", picture="https://pics/d.png")
        async with session_factory() as db:
            _, linked = await auth_service.external_login(db, profile)
            assert linked.id == local.id
            assert linked.google_id == "g-2"
            assert linked.profile_picture == "https://pics/d.png"

        async with session_factory() as db:
            _, user = await auth_service.login(db, "dave@blogmail.com", "secret123")
            assert user.id == local.id
        await engine.dispose()

    @pytest.mark.anyio
    async def test_linking_never_overwrites_a_different_google_identity(self, engine, session_factory):
        await init_db(engine)
        async with session_factory() as db:
            _, user = await auth_service.external_login(
                db, ExternalProfile(provider_id="g-3", email="erin@blogmail.com", name="Erin")
            )
            other = ExternalProfile(provider_id="g-other", email="erin@blogmail.com", name="Erin")
            with pytest.raises(ConflictException):
                await auth_service.link_external_identity(db, user, other)
            assert user.google_id == "g-3"
        await engine.dispose()

    @pytest.mark.anyio
    async def test_linking_requires_matching_email(self, engine, session_factory):
        await init_db(engine)
        async with session_factory() as db:
            _, user = await auth_service.signup(db, "Fay", "fay@blogmail.com", "secret123")
            profile = ExternalProfile(provider_id="g-4", email="someone@blogmail.com", name="Someone")
            with pytest.raises(ConflictException):
                await auth_service.link_external_identity(db, user, profile)
        await engine.dispose()


class FakeGoogleOAuthService(GoogleOAuthService):
    def __init__(self, profile: ExternalProfile):
        super().__init__()
        self.profile = profile

    async def fetch_profile(self, code: str) -> ExternalProfile:
        return self.profile


class TestGoogleHandshake:

    @pytest.fixture
    def google(self, client):
        fake = FakeGoogleOAuthService(ExternalProfile(provider_id="g-9", email="gina@blogmail.com", name="Gina"))
        app.dependency_overrides[get_google_oauth_service] = lambda: fake
        return fake

    def test_full_handshake_redirects_with_token(self, client, google):
        r = client.get("/api/auth/google", follow_redirects=False)
        assert r.status_code == 302
        consent = urlparse(r.headers["location"])
        state = parse_qs(consent.query)["state"][0]

        r = client.get(f"/api/auth/google/callback?code=abc&state={state}", follow_redirects=False)
        assert r.status_code == 302
        target = urlparse(r.headers["location"])
        assert target.path == "/oauth-success"
        token = parse_qs(target.query)["token"][0]

        r = client.get("/api/auth/oauth/success", headers=bearer(token))
        assert r.status_code == 200
        assert r.json()["user"]["email"] == "gina@blogmail.com"

    def test_state_mismatch_redirects_to_failure(self, client, google):
        client.get("/api/auth/google", follow_redirects=False)
        r = client.get("/api/auth/google/callback?code=abc&state=forged", follow_redirects=False)
        assert r.status_code == 302
        assert r.headers["location"].endswith("/login?error=google-auth-failed")

    def test_provider_error_redirects_to_failure(self, client, google):
        r = client.get("/api/auth/google/callback?error=access_denied", follow_redirects=False)
        assert r.status_code == 302
        assert "error=google-auth-failed" in r.headers["location"]
