"""Tests for the admin audit log service."""

import pytest

from thinkvoice_console.audit.service import (
    IMPERSONATION_START,
    IMPERSONATION_STOP,
    AuditService,
)
from thinkvoice_console.common.config import ConsoleSettings
from thinkvoice_console.common.database import DatabaseManager


@pytest.fixture
async def db():
    manager = DatabaseManager(ConsoleSettings(database_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def svc():
    return AuditService()


class TestAuditService:
    async def test_record(self, db, svc):
        async with db.get_session() as session:
            entry = await svc.record(
                session, IMPERSONATION_START, admin_id=5, impersonator_id=1,
                tenant_id=2, details={"by": "root@x.test"},
            )
            assert entry.id is not None
            assert entry.created_at is not None

    async def test_newest_first_and_filters(self, db, svc):
        async with db.get_session() as session:
            await svc.record(session, IMPERSONATION_START, tenant_id=1)
            await svc.record(session, IMPERSONATION_STOP, tenant_id=1)
            await svc.record(session, IMPERSONATION_START, tenant_id=2)
        async with db.get_session() as session:
            entries = await svc.list_entries(session)
            assert [e.tenant_id for e in entries] == [2, 1, 1]
            starts = await svc.list_entries(session, action=IMPERSONATION_START)
            assert len(starts) == 2
            tenant_one = await svc.list_entries(session, tenant_id=1)
            assert [e.action for e in tenant_one] == [IMPERSONATION_STOP, IMPERSONATION_START]

    async def test_pagination(self, db, svc):
        async with db.get_session() as session:
            for i in range(5):
                await svc.record(session, IMPERSONATION_START, tenant_id=i)
        async with db.get_session() as session:
            page = await svc.list_entries(session, limit=2, offset=1)
            assert [e.tenant_id for e in page] == [3, 2]
