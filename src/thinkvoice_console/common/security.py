"""Bearer-token authentication and tenant resolution dependencies."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select

from thinkvoice_console.auth.tokens import KIND_SUPER_ADMIN, KIND_USER, Identity, verify_token
from thinkvoice_console.common.exceptions import TokenExpiredError, TokenInvalidError
from thinkvoice_console.tenants.models import SuperAdminModel, TenantModel, UserModel

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """Resolved tenant and user for a tenant-scoped request.

    Handlers filter every data access by ``tenant_id`` from here, never by a
    tenant id taken from the body or path.
    """
    tenant_id: int
    user_id: int
    role: str
    impersonator_id: Optional[int] = None
    user: Optional[UserModel] = None
    tenant: Optional[TenantModel] = None

    @property
    def is_impersonating(self) -> bool:
        return self.impersonator_id is not None


def unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"}
    )


async def require_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Identity:
    """FastAPI dependency that verifies the ``Authorization: Bearer`` token."""
    if credentials is None or not credentials.credentials:
        raise unauthorized("Missing bearer token")
    try:
        return verify_token(credentials.credentials)
    except TokenExpiredError:
        logger.info("Rejected expired token")
        raise unauthorized("Token expired")
    except TokenInvalidError as exc:
        logger.info("Rejected token: %s", exc.message)
        raise unauthorized("Invalid token")


async def require_tenant_user(
    identity: Identity = Depends(require_identity),
) -> RequestContext:
    """Resolve the acting user and tenant from a user token."""
    if identity.kind != KIND_USER:
        raise HTTPException(status_code=403, detail="Tenant access required")

    from thinkvoice_console.deps import get_db
    db = get_db()
    async with db.get_session() as session:
        result = await session.execute(
            select(UserModel, TenantModel)
            .join(TenantModel, UserModel.tenant_id == TenantModel.id)
            .where(UserModel.id == identity.subject_id)
        )
        row = result.first()

    if row is None:
        raise unauthorized("User not found")
    user, tenant = row
    if user.status != "active":
        raise unauthorized("User not found or inactive")
    if user.tenant_id != identity.tenant_id:
        logger.warning(
            "Token tenant %s does not match user %s tenant %s",
            identity.tenant_id, user.id, user.tenant_id,
        )
        raise unauthorized("Invalid token")
    if tenant.status != "active":
        raise HTTPException(status_code=403, detail="Tenant account suspended")

    return RequestContext(
        tenant_id=tenant.id,
        user_id=user.id,
        role=user.role,
        impersonator_id=identity.impersonator_id,
        user=user,
        tenant=tenant,
    )


async def require_super_admin(
    identity: Identity = Depends(require_identity),
) -> SuperAdminModel:
    """FastAPI dependency that resolves the super-admin behind a token."""
    if identity.kind != KIND_SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Super admin access required")

    from thinkvoice_console.deps import get_db
    db = get_db()
    async with db.get_session() as session:
        admin = await session.get(SuperAdminModel, identity.subject_id)
    if admin is None:
        raise unauthorized("Super admin not found")
    return admin


def require_role(*roles: str):
    """Dependency factory: the tenant user's role must be one of ``roles``."""

    async def _check(ctx: RequestContext = Depends(require_tenant_user)) -> RequestContext:
        if ctx.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return ctx

    return _check
