"""Tenant and tenant-user management."""

import logging
import time
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.auth.passwords import hash_password
from thinkvoice_console.auth.service import CredentialService, normalize_email
from thinkvoice_console.common.exceptions import (
    DuplicateEmailError,
    DuplicateSlugError,
    DuplicateSubAccountError,
    InvalidInputError,
    PlanLimitError,
    TenantNotFoundError,
    UpstreamApiError,
    UserNotFoundError,
)
from thinkvoice_console.tenants.limits import can_create_resource, get_plan_limits
from thinkvoice_console.tenants.models import PLANS, ROLES, TenantModel, UserModel
from thinkvoice_console.voice.client import VoicePlatformClient
from thinkvoice_console.workspace.models import (
    AgentModel,
    CampaignModel,
    ExecutionModel,
    PhoneNumberModel,
)

logger = logging.getLogger(__name__)

TENANT_STATUSES = ("active", "suspended", "cancelled")
USER_STATUSES = ("active", "inactive", "suspended")


def is_platform_restriction(exc: UpstreamApiError) -> bool:
    """True when the platform refuses sub-accounts for this plan of the master account."""
    message = (exc.message or "").lower()
    return exc.status == 403 or "not available" in message or "contact support" in message


async def count_rows(session: AsyncSession, model: Any, tenant_id: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(model).where(model.tenant_id == tenant_id)
    )
    return int(result.scalar_one())


async def enforce_limit(
    session: AsyncSession, tenant: TenantModel, model: Any, resource: str
) -> None:
    """Raise ``PlanLimitError`` if one more ``model`` row would exceed the plan."""
    current = await count_rows(session, model, tenant.id)
    check = can_create_resource(current, tenant.plan, resource)
    if not check.allowed:
        raise PlanLimitError(check.message or "Plan limit reached", check.limit, current)


class TenantService:
    """Tenant management operations."""

    def __init__(self, credentials: CredentialService | None = None):
        self.credentials = credentials or CredentialService()

    # ── Tenants ──

    async def get_by_slug(self, session: AsyncSession, slug: str) -> TenantModel | None:
        result = await session.execute(select(TenantModel).where(TenantModel.slug == slug))
        return result.scalar_one_or_none()

    async def get_by_sub_account(
        self, session: AsyncSession, sub_account_id: str
    ) -> TenantModel | None:
        result = await session.execute(
            select(TenantModel).where(TenantModel.bolna_sub_account_id == sub_account_id)
        )
        return result.scalar_one_or_none()

    async def get_tenant(self, session: AsyncSession, tenant_id: int) -> TenantModel:
        tenant = await session.get(TenantModel, tenant_id)
        if tenant is None:
            raise TenantNotFoundError()
        return tenant

    async def list_tenants(self, session: AsyncSession) -> list[TenantModel]:
        result = await session.execute(select(TenantModel).order_by(TenantModel.id.desc()))
        return list(result.scalars().all())

    async def _provision_sub_account(
        self, voice: VoicePlatformClient, name: str, slug: str, admin_email: str
    ) -> tuple[str, dict[str, Any]]:
        try:
            created = await voice.create_sub_account(name, admin_email)
        except UpstreamApiError as exc:
            if not is_platform_restriction(exc):
                raise
            placeholder = f"internal-{slug}-{int(time.time() * 1000)}"
            logger.warning(
                "Sub-account creation refused for %s (%s); using %s",
                slug, exc.message, placeholder,
            )
            return placeholder, {"pending_subaccount": True, "pending_reason": exc.message}

        sub_account_id = None
        if isinstance(created, dict):
            sub_account_id = created.get("sub_account_id") or created.get("id")
        if not sub_account_id:
            raise UpstreamApiError("Failed to create Bolna sub-account", status=502)
        return str(sub_account_id), {}

    async def create_tenant(
        self,
        session: AsyncSession,
        name: str,
        slug: str,
        admin_name: str,
        admin_email: str,
        admin_password: str,
        plan: str = "starter",
        sub_account_id: str | None = None,
        voice: VoicePlatformClient | None = None,
    ) -> tuple[TenantModel, UserModel]:
        """Create a tenant together with its first admin user.

        Without an explicit ``sub_account_id`` a sub-account is created on the
        voice platform. Both rows are flushed in the caller's transaction, so
        they commit or roll back together.
        """
        if plan not in PLANS:
            raise InvalidInputError(f"Invalid plan '{plan}'")
        if await self.get_by_slug(session, slug) is not None:
            raise DuplicateSlugError()
        if await self.credentials.get_user_by_email(session, admin_email) is not None:
            raise DuplicateEmailError("Admin email already in use")

        settings: dict[str, Any] = {}
        if sub_account_id:
            sub_account_id = sub_account_id.strip()
        else:
            if voice is None:
                raise UpstreamApiError("Bolna API Key not configured", status=401)
            sub_account_id, settings = await self._provision_sub_account(
                voice, name, slug, admin_email
            )
        if await self.get_by_sub_account(session, sub_account_id) is not None:
            raise DuplicateSubAccountError()

        tenant = TenantModel(
            name=name,
            slug=slug,
            bolna_sub_account_id=sub_account_id,
            plan=plan,
            status="active",
            settings=settings,
        )
        session.add(tenant)
        await session.flush()

        admin = await self.credentials.create_user(
            session, tenant.id, admin_name, admin_email, admin_password, role="admin"
        )
        logger.info(
            "Created tenant %s (%s) with admin user %s", tenant.id, slug, admin.id,
            extra={"tenant_id": tenant.id, "user_id": admin.id},
        )
        return tenant, admin

    async def update_tenant(
        self,
        session: AsyncSession,
        tenant_id: int,
        name: str | None = None,
        plan: str | None = None,
        status: str | None = None,
        sub_account_id: str | None = None,
    ) -> TenantModel:
        tenant = await self.get_tenant(session, tenant_id)
        if plan is not None:
            if plan not in PLANS:
                raise InvalidInputError(f"Invalid plan '{plan}'")
            tenant.plan = plan
        if status is not None:
            if status not in TENANT_STATUSES:
                raise InvalidInputError(f"Invalid status '{status}'")
            tenant.status = status
        if name:
            tenant.name = name
        if sub_account_id:
            existing = await self.get_by_sub_account(session, sub_account_id)
            if existing is not None and existing.id != tenant.id:
                raise DuplicateSubAccountError()
            settings = dict(tenant.settings or {})
            settings.pop("pending_subaccount", None)
            settings.pop("pending_reason", None)
            tenant.bolna_sub_account_id = sub_account_id
            tenant.settings = settings
        await session.flush()
        return tenant

    async def usage(self, session: AsyncSession, tenant: TenantModel) -> dict[str, dict[str, int]]:
        """Current resource counts against the tenant's plan limits."""
        limits = get_plan_limits(tenant.plan)
        return {
            "users": {
                "current": await count_rows(session, UserModel, tenant.id),
                "limit": limits["max_users"],
            },
            "agents": {
                "current": await count_rows(session, AgentModel, tenant.id),
                "limit": limits["max_agents"],
            },
            "phone_numbers": {
                "current": await count_rows(session, PhoneNumberModel, tenant.id),
                "limit": limits["max_phone_numbers"],
            },
            "campaigns": {
                "current": await count_rows(session, CampaignModel, tenant.id),
                "limit": limits["max_campaigns"],
            },
            "executions": {
                "current": await count_rows(session, ExecutionModel, tenant.id),
                "limit": limits["max_calls_per_month"],
            },
        }

    # ── Users ──

    async def list_users(self, session: AsyncSession, tenant_id: int) -> list[UserModel]:
        result = await session.execute(
            select(UserModel)
            .where(UserModel.tenant_id == tenant_id)
            .order_by(UserModel.id)
        )
        return list(result.scalars().all())

    async def create_tenant_user(
        self,
        session: AsyncSession,
        tenant: TenantModel,
        name: str,
        email: str,
        password: str,
        role: str = "agent",
        enforce_plan: bool = True,
    ) -> UserModel:
        if enforce_plan:
            await enforce_limit(session, tenant, UserModel, "max_users")
        return await self.credentials.create_user(
            session, tenant.id, name, email, password, role
        )

    async def update_user(
        self,
        session: AsyncSession,
        user_id: int,
        tenant_id: int | None = None,
        name: str | None = None,
        email: str | None = None,
        role: str | None = None,
        status: str | None = None,
        password: str | None = None,
    ) -> UserModel:
        """Patch a user. With ``tenant_id`` set, users of other tenants are invisible."""
        user = await session.get(UserModel, user_id)
        if user is None or (tenant_id is not None and user.tenant_id != tenant_id):
            raise UserNotFoundError()
        if role is not None:
            if role not in ROLES:
                raise InvalidInputError(f"Invalid role '{role}'")
            user.role = role
        if status is not None:
            if status not in USER_STATUSES:
                raise InvalidInputError(f"Invalid status '{status}'")
            user.status = status
        if email and normalize_email(email) != user.email:
            if await self.credentials.get_user_by_email(session, email) is not None:
                raise DuplicateEmailError()
            user.email = normalize_email(email)
        if name:
            user.name = name
        if password:
            user.password_hash = hash_password(password)
        await session.flush()
        return user
