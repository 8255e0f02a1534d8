"""Super-admin impersonation of tenants.

Starting an impersonation issues a short-lived user token for the tenant's
active admin that also carries the super-admin's id, and writes exactly one
``impersonation_start`` audit row in the same transaction. Stopping is
best-effort: the ``impersonation_stop`` row is written in its own session and
a failure is logged, never raised.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.audit.service import (
    IMPERSONATION_START,
    IMPERSONATION_STOP,
    AuditService,
)
from thinkvoice_console.auth.service import identity_for_user
from thinkvoice_console.auth.tokens import issue_token
from thinkvoice_console.common.config import ConsoleSettings
from thinkvoice_console.common.database import DatabaseManager
from thinkvoice_console.common.exceptions import TenantNotFoundError, UserNotFoundError
from thinkvoice_console.tenants.models import SuperAdminModel, TenantModel, UserModel

logger = logging.getLogger(__name__)


@dataclass
class ImpersonationGrant:
    token: str
    user: UserModel
    tenant: TenantModel
    expires_in: int


class ImpersonationService:
    def __init__(self, settings: ConsoleSettings, audit_service: AuditService):
        self.settings = settings
        self.audit = audit_service

    async def _tenant_admin(self, session: AsyncSession, tenant_id: int) -> UserModel:
        result = await session.execute(
            select(UserModel)
            .where(
                UserModel.tenant_id == tenant_id,
                UserModel.role == "admin",
                UserModel.status == "active",
            )
            .order_by(UserModel.id)
            .limit(1)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError("No active admin user for tenant")
        return user

    async def start(
        self, session: AsyncSession, super_admin: SuperAdminModel, tenant_id: int
    ) -> ImpersonationGrant:
        tenant = await session.get(TenantModel, tenant_id)
        if tenant is None:
            raise TenantNotFoundError()
        user = await self._tenant_admin(session, tenant.id)

        ttl = self.settings.impersonation_ttl
        token = issue_token(identity_for_user(user, impersonator_id=super_admin.id), ttl=ttl)
        await self.audit.record(
            session,
            IMPERSONATION_START,
            admin_id=user.id,
            impersonator_id=super_admin.id,
            tenant_id=tenant.id,
            details={"by": super_admin.email},
        )
        logger.info(
            "Super admin %s started impersonating tenant %s as user %s",
            super_admin.id, tenant.id, user.id,
            extra={"tenant_id": tenant.id, "user_id": user.id, "impersonator_id": super_admin.id},
        )
        return ImpersonationGrant(token=token, user=user, tenant=tenant, expires_in=ttl)

    async def stop(
        self,
        db: DatabaseManager,
        impersonator_id: int | None,
        tenant_id: int | None,
        admin_id: int | None,
        by: str | int | None = None,
    ) -> bool:
        """Record the end of an impersonation. Returns False if the row could not be written."""
        try:
            async with db.get_session() as session:
                await self.audit.record(
                    session,
                    IMPERSONATION_STOP,
                    admin_id=admin_id,
                    impersonator_id=impersonator_id,
                    tenant_id=tenant_id,
                    details={"by": by if by is not None else impersonator_id},
                )
        except Exception:
            logger.exception(
                "Failed to record impersonation stop for tenant %s by %s",
                tenant_id, impersonator_id,
            )
            return False
        logger.info(
            "Super admin %s stopped impersonating tenant %s", impersonator_id, tenant_id,
            extra={"tenant_id": tenant_id, "impersonator_id": impersonator_id},
        )
        return True
