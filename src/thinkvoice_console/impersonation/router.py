"""Impersonation start/stop endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from thinkvoice_console.auth.schemas import SessionTenant, SessionUser
from thinkvoice_console.auth.tokens import Identity
from thinkvoice_console.common.errors import http_exception
from thinkvoice_console.common.exceptions import ConsoleError
from thinkvoice_console.common.security import (
    require_identity,
    require_super_admin,
    unauthorized,
)
from thinkvoice_console.impersonation.schemas import (
    ImpersonationResponse,
    StopImpersonationRequest,
    StopImpersonationResponse,
)
from thinkvoice_console.tenants.models import SuperAdminModel

router = APIRouter(tags=["impersonation"])


def _get_service():
    from thinkvoice_console.deps import get_impersonation_service
    return get_impersonation_service()


def _get_db():
    from thinkvoice_console.deps import get_db
    return get_db()


@router.post(
    "/super-admin/tenants/{tenant_id}/impersonate",
    response_model=ImpersonationResponse,
)
async def start_impersonation(tenant_id: int, admin=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            grant = await svc.start(session, admin, tenant_id)
            return ImpersonationResponse(
                token=grant.token,
                user=SessionUser(
                    id=grant.user.id, name=grant.user.name, email=grant.user.email,
                    role=grant.user.role, tenant_id=grant.user.tenant_id,
                ),
                tenant=SessionTenant(
                    id=grant.tenant.id, name=grant.tenant.name, slug=grant.tenant.slug,
                    plan=grant.tenant.plan, status=grant.tenant.status,
                ),
                expires_in=grant.expires_in,
            )
    except ConsoleError as e:
        raise http_exception(e)


@router.post("/super-admin/impersonation/stop", response_model=StopImpersonationResponse)
async def stop_impersonation(
    body: Optional[StopImpersonationRequest] = None,
    identity: Identity = Depends(require_identity),
):
    """Record the end of an impersonation.

    Accepts the super-admin's own token (ids from the body) or the
    impersonation token (ids from its claims). Never fails on audit errors.
    """
    svc = _get_service()
    db = _get_db()
    body = body or StopImpersonationRequest()

    if identity.is_super_admin:
        async with db.get_session() as session:
            admin = await session.get(SuperAdminModel, identity.subject_id)
        if admin is None:
            raise unauthorized("Super admin not found")
        ok = await svc.stop(
            db, impersonator_id=admin.id, tenant_id=body.tenant_id,
            admin_id=body.admin_id, by=admin.email,
        )
    elif identity.is_impersonation:
        ok = await svc.stop(
            db, impersonator_id=identity.impersonator_id, tenant_id=identity.tenant_id,
            admin_id=identity.subject_id,
        )
    else:
        raise HTTPException(status_code=403, detail="Not an impersonation session")
    return StopImpersonationResponse(ok=ok)
