"""Shared test fixtures for ThinkVoice Console."""

import os

import httpx
import pytest
from httpx import ASGITransport, AsyncClient


JWT_SECRET = "test-jwt-secret-for-unit-tests"
SUPER_ADMIN_EMAIL = "root@thinkvoice.test"
SUPER_ADMIN_PASSWORD = "root-password"


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
    os.environ["JWT_SECRET"] = JWT_SECRET
    os.environ["BOLNA_API_KEY"] = ""
    os.environ.pop("BOLNA_WEBHOOK_SECRET", None)
    os.environ.pop("SUPER_ADMIN_EMAIL", None)
    os.environ.pop("SUPER_ADMIN_PASSWORD", None)

    # Clear caches and singletons so new env vars take effect
    from thinkvoice_console.common.config import get_settings
    get_settings.cache_clear()

    from thinkvoice_console.deps import reset_singletons
    reset_singletons()

    from thinkvoice_console.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from thinkvoice_console.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def super_admin(client):
    from thinkvoice_console.deps import get_credential_service, get_db
    async with get_db().get_session() as session:
        admin, _ = await get_credential_service().ensure_super_admin(
            session, SUPER_ADMIN_EMAIL, SUPER_ADMIN_PASSWORD, "Root"
        )
    return admin


@pytest.fixture
def super_admin_headers(super_admin):
    from thinkvoice_console.auth.service import identity_for_super_admin
    from thinkvoice_console.auth.tokens import issue_token
    return bearer(issue_token(identity_for_super_admin(super_admin)))


@pytest.fixture
def make_tenant(client, super_admin_headers):
    """Create a tenant through the API with an explicit sub-account."""

    async def _make(slug: str, plan: str = "starter", admin_email: str | None = None):
        resp = await client.post(
            "/api/super-admin/tenants",
            json={
                "name": slug.title(),
                "slug": slug,
                "admin_name": f"{slug} admin",
                "admin_email": admin_email or f"admin@{slug}.test",
                "admin_password": "secret-pass",
                "plan": plan,
                "sub_account_id": f"sub-{slug}",
            },
            headers=super_admin_headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def login(client):
    """Log a user in and return auth headers."""

    async def _login(email: str, password: str = "secret-pass") -> dict[str, str]:
        resp = await client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        assert resp.status_code == 200, resp.text
        return bearer(resp.json()["token"])

    return _login


@pytest.fixture
def mock_platform(monkeypatch):
    """Route every voice-platform call to ``handler`` instead of the network."""

    def _install(handler):
        from thinkvoice_console.voice.client import VoicePlatformClient
        voice = VoicePlatformClient(
            "test-master-key",
            base_url="https://bolna.test",
            transport=httpx.MockTransport(handler),
        )

        async def _get_voice_client():
            return voice

        monkeypatch.setattr("thinkvoice_console.deps.get_voice_client", _get_voice_client)
        return voice

    return _install
