"""Tests for password hashing and the credential store."""

import pytest

from thinkvoice_console.auth.passwords import hash_password, verify_password
from thinkvoice_console.auth.service import CredentialService
from thinkvoice_console.common.config import ConsoleSettings
from thinkvoice_console.common.database import DatabaseManager
from thinkvoice_console.common.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    TenantNotFoundError,
)
from thinkvoice_console.tenants.models import TenantModel


@pytest.fixture
async def db():
    manager = DatabaseManager(ConsoleSettings(database_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def svc():
    return CredentialService()


async def add_tenant(db, slug="acme", status="active") -> int:
    async with db.get_session() as session:
        tenant = TenantModel(
            name=slug.title(), slug=slug, bolna_sub_account_id=f"sub-{slug}",
            plan="starter", status=status, settings={},
        )
        session.add(tenant)
        await session.flush()
        return tenant.id


class TestPasswords:
    def test_hash_is_salted(self):
        assert hash_password("pw") != hash_password("pw")

    def test_verify(self):
        hashed = hash_password("pw")
        assert verify_password("pw", hashed)
        assert not verify_password("nope", hashed)

    def test_empty_or_broken_hash(self):
        assert not verify_password("pw", "")
        assert not verify_password("pw", "not-a-hash")


class TestCreateUser:
    async def test_create(self, db, svc):
        tenant_id = await add_tenant(db)
        async with db.get_session() as session:
            user = await svc.create_user(session, tenant_id, "Ann", " Ann@Acme.Test ", "pw")
            assert user.email == "ann@acme.test"
            assert user.role == "agent"
            assert user.password_hash != "pw"

    async def test_duplicate_email_across_tenants(self, db, svc):
        a = await add_tenant(db, "a")
        b = await add_tenant(db, "b")
        async with db.get_session() as session:
            await svc.create_user(session, a, "Ann", "ann@x.test", "pw")
        with pytest.raises(DuplicateEmailError):
            async with db.get_session() as session:
                await svc.create_user(session, b, "Ann", "ANN@x.test", "pw")

    async def test_invalid_role(self, db, svc):
        tenant_id = await add_tenant(db)
        with pytest.raises(InvalidInputError):
            async with db.get_session() as session:
                await svc.create_user(session, tenant_id, "Ann", "ann@x.test", "pw", role="owner")

    async def test_unknown_tenant(self, db, svc):
        with pytest.raises(TenantNotFoundError):
            async with db.get_session() as session:
                await svc.create_user(session, 999, "Ann", "ann@x.test", "pw")


class TestVerifyCredentials:
    async def test_success(self, db, svc):
        tenant_id = await add_tenant(db)
        async with db.get_session() as session:
            await svc.create_user(session, tenant_id, "Ann", "ann@x.test", "pw", role="admin")
        async with db.get_session() as session:
            user, tenant = await svc.verify_credentials(session, "ANN@x.test", "pw")
            assert user.role == "admin"
            assert tenant.id == tenant_id

    async def test_unknown_email_and_wrong_password_look_alike(self, db, svc):
        tenant_id = await add_tenant(db)
        async with db.get_session() as session:
            await svc.create_user(session, tenant_id, "Ann", "ann@x.test", "pw")
        messages = []
        for email, password in (("ghost@x.test", "pw"), ("ann@x.test", "wrong")):
            with pytest.raises(InvalidCredentialsError) as exc:
                async with db.get_session() as session:
                    await svc.verify_credentials(session, email, password)
            messages.append(exc.value.message)
        assert messages[0] == messages[1]

    async def test_inactive_user(self, db, svc):
        tenant_id = await add_tenant(db)
        async with db.get_session() as session:
            user = await svc.create_user(session, tenant_id, "Ann", "ann@x.test", "pw")
            user.status = "inactive"
        with pytest.raises(InvalidCredentialsError) as exc:
            async with db.get_session() as session:
                await svc.verify_credentials(session, "ann@x.test", "pw")
        assert exc.value.message == "Invalid credentials"

    async def test_suspended_tenant(self, db, svc):
        tenant_id = await add_tenant(db, status="suspended")
        async with db.get_session() as session:
            await svc.create_user(session, tenant_id, "Ann", "ann@x.test", "pw")
        with pytest.raises(InvalidCredentialsError) as exc:
            async with db.get_session() as session:
                await svc.verify_credentials(session, "ann@x.test", "pw")
        assert exc.value.message == "Account suspended"

    async def test_tenant_slug_must_match(self, db, svc):
        tenant_id = await add_tenant(db, "acme")
        await add_tenant(db, "other")
        async with db.get_session() as session:
            await svc.create_user(session, tenant_id, "Ann", "ann@x.test", "pw")
        with pytest.raises(InvalidCredentialsError):
            async with db.get_session() as session:
                await svc.verify_credentials(session, "ann@x.test", "pw", tenant_slug="other")
        async with db.get_session() as session:
            user, _ = await svc.verify_credentials(session, "ann@x.test", "pw", tenant_slug="acme")
            assert user.tenant_id == tenant_id


class TestSuperAdmin:
    async def test_ensure_creates_then_updates(self, db, svc):
        async with db.get_session() as session:
            admin, created = await svc.ensure_super_admin(session, "root@x.test", "one")
            assert created
        async with db.get_session() as session:
            again, created = await svc.ensure_super_admin(session, "root@x.test", "two", "Boss")
            assert not created
            assert again.id == admin.id
            assert again.name == "Boss"
        async with db.get_session() as session:
            found = await svc.verify_super_admin_credentials(session, "root@x.test", "two")
            assert found.id == admin.id

    async def test_wrong_password(self, db, svc):
        async with db.get_session() as session:
            await svc.ensure_super_admin(session, "root@x.test", "one")
        with pytest.raises(InvalidCredentialsError):
            async with db.get_session() as session:
                await svc.verify_super_admin_credentials(session, "root@x.test", "two")
