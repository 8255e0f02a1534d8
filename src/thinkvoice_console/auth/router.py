"""Login and identity endpoints for tenant users and super-admins."""

from fastapi import APIRouter, Depends

from thinkvoice_console.auth.schemas import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    SessionTenant,
    SessionUser,
    SuperAdminLoginResponse,
    SuperAdminResponse,
)
from thinkvoice_console.auth.service import identity_for_super_admin, identity_for_user
from thinkvoice_console.auth.tokens import issue_token
from thinkvoice_console.common.exceptions import InvalidCredentialsError
from thinkvoice_console.common.security import (
    RequestContext,
    require_super_admin,
    require_tenant_user,
    unauthorized,
)

router = APIRouter(tags=["auth"])


def _get_service():
    from thinkvoice_console.deps import get_credential_service
    return get_credential_service()


def _get_db():
    from thinkvoice_console.deps import get_db
    return get_db()


def _session_user(user) -> SessionUser:
    return SessionUser(
        id=user.id, name=user.name, email=user.email,
        role=user.role, tenant_id=user.tenant_id,
    )


def _session_tenant(tenant) -> SessionTenant:
    return SessionTenant(
        id=tenant.id, name=tenant.name, slug=tenant.slug,
        plan=tenant.plan, status=tenant.status,
    )


async def _login(body: LoginRequest, tenant_slug: str | None = None) -> LoginResponse:
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            user, tenant = await svc.verify_credentials(
                session, body.email, body.password, tenant_slug=tenant_slug
            )
        except InvalidCredentialsError as e:
            raise unauthorized(e.message)
        return LoginResponse(
            token=issue_token(identity_for_user(user)),
            user=_session_user(user),
            tenant=_session_tenant(tenant),
        )


@router.post("/auth/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    return await _login(body)


@router.post("/tenants/{slug}/login", response_model=LoginResponse)
async def tenant_login(slug: str, body: LoginRequest):
    return await _login(body, tenant_slug=slug)


@router.get("/auth/me", response_model=MeResponse)
async def me(ctx: RequestContext = Depends(require_tenant_user)):
    return MeResponse(
        user=_session_user(ctx.user),
        tenant=_session_tenant(ctx.tenant),
        impersonator_id=ctx.impersonator_id,
    )


@router.post("/super-admin/login", response_model=SuperAdminLoginResponse)
async def super_admin_login(body: LoginRequest):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            admin = await svc.verify_super_admin_credentials(
                session, body.email, body.password
            )
        except InvalidCredentialsError as e:
            raise unauthorized(e.message)
        return SuperAdminLoginResponse(
            token=issue_token(identity_for_super_admin(admin)),
            admin=SuperAdminResponse.model_validate(admin),
        )


@router.get("/super-admin/me", response_model=SuperAdminResponse)
async def super_admin_me(admin=Depends(require_super_admin)):
    return SuperAdminResponse.model_validate(admin)
