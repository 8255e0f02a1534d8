"""Credential store: users, super-admins, and password checks."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.auth.passwords import hash_password, verify_password
from thinkvoice_console.auth.tokens import KIND_SUPER_ADMIN, KIND_USER, Identity
from thinkvoice_console.common.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    TenantNotFoundError,
)
from thinkvoice_console.tenants.models import (
    ROLES,
    SuperAdminModel,
    TenantModel,
    UserModel,
)

logger = logging.getLogger(__name__)

_dummy_hash: str | None = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _burn_password_check(password: str) -> None:
    """Spend the same hashing work for unknown emails as for known ones."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("not-a-real-password")
    verify_password(password, _dummy_hash)


def identity_for_user(user: UserModel, impersonator_id: int | None = None) -> Identity:
    return Identity(
        kind=KIND_USER,
        subject_id=user.id,
        tenant_id=user.tenant_id,
        role=user.role,
        impersonator_id=impersonator_id,
    )


def identity_for_super_admin(admin: SuperAdminModel) -> Identity:
    return Identity(kind=KIND_SUPER_ADMIN, subject_id=admin.id, role="super_admin")


class CredentialService:
    """Create and authenticate tenant users and super-admins."""

    async def get_user_by_email(
        self, session: AsyncSession, email: str
    ) -> UserModel | None:
        result = await session.execute(
            select(UserModel).where(UserModel.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        session: AsyncSession,
        tenant_id: int,
        name: str,
        email: str,
        password: str,
        role: str = "agent",
    ) -> UserModel:
        """Store a new user with a salted password hash.

        Emails are unique across all tenants.
        """
        if role not in ROLES:
            raise InvalidInputError(f"Invalid role '{role}'. Must be one of: {', '.join(ROLES)}")
        if await session.get(TenantModel, tenant_id) is None:
            raise TenantNotFoundError()
        if await self.get_user_by_email(session, email) is not None:
            raise DuplicateEmailError()

        user = UserModel(
            tenant_id=tenant_id,
            name=name,
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=role,
            status="active",
        )
        session.add(user)
        await session.flush()
        return user

    async def verify_credentials(
        self,
        session: AsyncSession,
        email: str,
        password: str,
        tenant_slug: str | None = None,
    ) -> tuple[UserModel, TenantModel]:
        """Return the (user, tenant) pair for a matching active user.

        Unknown email, wrong password, inactive user and wrong tenant slug all
        raise the same ``InvalidCredentialsError``.
        """
        query = (
            select(UserModel, TenantModel)
            .join(TenantModel, UserModel.tenant_id == TenantModel.id)
            .where(UserModel.email == normalize_email(email))
        )
        if tenant_slug is not None:
            query = query.where(TenantModel.slug == tenant_slug)
        row = (await session.execute(query)).first()

        if row is None:
            _burn_password_check(password)
            logger.info("Login failed: unknown email")
            raise InvalidCredentialsError()

        user, tenant = row
        if not verify_password(password, user.password_hash) or user.status != "active":
            logger.info("Login failed for user %s", user.id)
            raise InvalidCredentialsError()
        if tenant.status != "active":
            logger.info("Login refused for user %s: tenant %s is %s", user.id, tenant.id, tenant.status)
            raise InvalidCredentialsError("Account suspended")
        return user, tenant

    # ── Super-admins ──

    async def get_super_admin_by_email(
        self, session: AsyncSession, email: str
    ) -> SuperAdminModel | None:
        result = await session.execute(
            select(SuperAdminModel).where(SuperAdminModel.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def verify_super_admin_credentials(
        self, session: AsyncSession, email: str, password: str
    ) -> SuperAdminModel:
        admin = await self.get_super_admin_by_email(session, email)
        if admin is None:
            _burn_password_check(password)
            logger.info("Super-admin login failed: unknown email")
            raise InvalidCredentialsError()
        if not verify_password(password, admin.password_hash):
            logger.info("Super-admin login failed for %s", admin.id)
            raise InvalidCredentialsError()
        return admin

    async def ensure_super_admin(
        self, session: AsyncSession, email: str, password: str, name: str = "Super Admin"
    ) -> tuple[SuperAdminModel, bool]:
        """Create the super-admin, or reset its name and password. Returns (admin, created)."""
        admin = await self.get_super_admin_by_email(session, email)
        created = admin is None
        if admin is None:
            admin = SuperAdminModel(email=normalize_email(email), name=name, password_hash="")
            session.add(admin)
        admin.name = name
        admin.password_hash = hash_password(password)
        await session.flush()
        return admin, created
