"""Append and query privileged admin actions."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.audit.models import AdminAuditLogModel

IMPERSONATION_START = "impersonation_start"
IMPERSONATION_STOP = "impersonation_stop"


class AuditService:
    """Append-only log of privileged actions. Rows are never updated."""

    # ── Write ──

    async def record(
        self,
        session: AsyncSession,
        action: str,
        admin_id: int | None = None,
        impersonator_id: int | None = None,
        tenant_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> AdminAuditLogModel:
        entry = AdminAuditLogModel(
            action=action,
            admin_id=admin_id,
            impersonator_id=impersonator_id,
            tenant_id=tenant_id,
            details=details or {},
        )
        session.add(entry)
        await session.flush()
        return entry

    # ── Read ──

    async def list_entries(
        self,
        session: AsyncSession,
        action: str | None = None,
        tenant_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AdminAuditLogModel]:
        """Paginated entries, newest first."""
        query = select(AdminAuditLogModel)
        if action:
            query = query.where(AdminAuditLogModel.action == action)
        if tenant_id is not None:
            query = query.where(AdminAuditLogModel.tenant_id == tenant_id)
        query = (
            query.order_by(AdminAuditLogModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())
