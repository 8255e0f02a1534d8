"""Tests for the impersonation service."""

import pytest
from sqlalchemy import select

from thinkvoice_console.audit.models import AdminAuditLogModel
from thinkvoice_console.audit.service import IMPERSONATION_START, IMPERSONATION_STOP, AuditService
from thinkvoice_console.auth.service import CredentialService
from thinkvoice_console.auth.tokens import verify_token
from thinkvoice_console.common.config import ConsoleSettings
from thinkvoice_console.common.database import DatabaseManager
from thinkvoice_console.common.exceptions import TenantNotFoundError, UserNotFoundError
from thinkvoice_console.impersonation.service import ImpersonationService
from thinkvoice_console.tenants.service import TenantService

SECRET = "impersonation-test-secret"


@pytest.fixture
def settings():
    return ConsoleSettings(
        database_url="sqlite+aiosqlite://", jwt_secret=SECRET, impersonation_ttl=900
    )


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def svc(settings):
    return ImpersonationService(settings, AuditService())


@pytest.fixture(autouse=True)
def signing_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", SECRET)
    from thinkvoice_console.common.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


async def setup_tenant(db):
    async with db.get_session() as session:
        root, _ = await CredentialService().ensure_super_admin(session, "root@x.test", "pw")
        tenant, admin = await TenantService().create_tenant(
            session, name="Acme", slug="acme", admin_name="Admin",
            admin_email="admin@acme.test", admin_password="secret-pass",
            sub_account_id="sub-acme",
        )
        return root, tenant, admin


async def audit_rows(db, action=None):
    async with db.get_session() as session:
        query = select(AdminAuditLogModel)
        if action:
            query = query.where(AdminAuditLogModel.action == action)
        return list((await session.execute(query)).scalars().all())


class TestStart:
    async def test_token_carries_both_identities(self, db, svc):
        root, tenant, admin = await setup_tenant(db)
        async with db.get_session() as session:
            grant = await svc.start(session, root, tenant.id)
        identity = verify_token(grant.token, secret=SECRET)
        assert identity.subject_id == admin.id
        assert identity.tenant_id == tenant.id
        assert identity.impersonator_id == root.id
        assert grant.expires_in == 900

    async def test_exactly_one_start_row(self, db, svc):
        root, tenant, admin = await setup_tenant(db)
        async with db.get_session() as session:
            await svc.start(session, root, tenant.id)
        rows = await audit_rows(db)
        assert len(rows) == 1
        assert rows[0].action == IMPERSONATION_START
        assert rows[0].admin_id == admin.id
        assert rows[0].impersonator_id == root.id
        assert rows[0].details == {"by": "root@x.test"}

    async def test_unknown_tenant(self, db, svc):
        root, _, _ = await setup_tenant(db)
        with pytest.raises(TenantNotFoundError):
            async with db.get_session() as session:
                await svc.start(session, root, 999)
        assert await audit_rows(db) == []

    async def test_no_active_admin(self, db, svc):
        root, tenant, admin = await setup_tenant(db)
        async with db.get_session() as session:
            await TenantService().update_user(session, admin.id, status="inactive")
        with pytest.raises(UserNotFoundError):
            async with db.get_session() as session:
                await svc.start(session, root, tenant.id)


class TestStop:
    async def test_records_stop(self, db, svc):
        root, tenant, admin = await setup_tenant(db)
        ok = await svc.stop(db, impersonator_id=root.id, tenant_id=tenant.id, admin_id=admin.id)
        assert ok is True
        rows = await audit_rows(db, IMPERSONATION_STOP)
        assert len(rows) == 1
        assert rows[0].tenant_id == tenant.id

    async def test_audit_failure_returns_false(self, db, settings):
        class BrokenAudit(AuditService):
            async def record(self, *args, **kwargs):
                raise RuntimeError("audit table unavailable")

        svc = ImpersonationService(settings, BrokenAudit())
        ok = await svc.stop(db, impersonator_id=1, tenant_id=1, admin_id=1)
        assert ok is False
