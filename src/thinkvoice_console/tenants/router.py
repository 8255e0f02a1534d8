"""Tenant and user management endpoints.

``/super-admin/...`` routes manage any tenant. ``/tenant/...`` routes act
only on the tenant resolved from the caller's token.
"""

from fastapi import APIRouter, Depends, HTTPException

from thinkvoice_console.common.errors import http_exception
from thinkvoice_console.common.exceptions import ConsoleError, UpstreamApiError
from thinkvoice_console.common.security import (
    RequestContext,
    require_role,
    require_super_admin,
    require_tenant_user,
)
from thinkvoice_console.tenants.limits import get_plan_limits
from thinkvoice_console.tenants.schemas import (
    LimitsResponse,
    SuperAdminUserCreate,
    TenantCreate,
    TenantCreateResponse,
    TenantDetailResponse,
    TenantResponse,
    TenantUpdate,
    UserCreate,
    UserResponse,
    UserUpdate,
)

router = APIRouter(tags=["tenants"])


def _get_service():
    from thinkvoice_console.deps import get_tenant_service
    return get_tenant_service()


def _get_db():
    from thinkvoice_console.deps import get_db
    return get_db()


async def _get_voice_client():
    from thinkvoice_console.deps import get_voice_client
    return await get_voice_client()


# ── Super-admin ──


@router.post("/super-admin/tenants", response_model=TenantCreateResponse, status_code=201)
async def create_tenant(body: TenantCreate, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    voice = None
    try:
        if not body.sub_account_id:
            voice = await _get_voice_client()
        async with db.get_session() as session:
            tenant, admin = await svc.create_tenant(
                session,
                name=body.name,
                slug=body.slug,
                admin_name=body.admin_name,
                admin_email=body.admin_email,
                admin_password=body.admin_password,
                plan=body.plan,
                sub_account_id=body.sub_account_id,
                voice=voice,
            )
            return TenantCreateResponse(
                tenant=TenantResponse.model_validate(tenant),
                admin=UserResponse.model_validate(admin),
            )
    except UpstreamApiError as e:
        raise HTTPException(status_code=400, detail=f"Failed to create tenant: {e.message}")
    except ConsoleError as e:
        raise http_exception(e)


@router.get("/super-admin/tenants", response_model=list[TenantResponse])
async def list_tenants(_=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenants = await svc.list_tenants(session)
        return [TenantResponse.model_validate(t) for t in tenants]


@router.get("/super-admin/tenants/{tenant_id}", response_model=TenantDetailResponse)
async def get_tenant(tenant_id: int, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            tenant = await svc.get_tenant(session, tenant_id)
        except ConsoleError as e:
            raise http_exception(e)
        return TenantDetailResponse(
            tenant=TenantResponse.model_validate(tenant),
            usage=await svc.usage(session, tenant),
            plan_limits=get_plan_limits(tenant.plan),
        )


@router.patch("/super-admin/tenants/{tenant_id}", response_model=TenantResponse)
async def update_tenant(tenant_id: int, body: TenantUpdate, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            tenant = await svc.update_tenant(
                session, tenant_id,
                name=body.name, plan=body.plan, status=body.status,
                sub_account_id=body.sub_account_id,
            )
            return TenantResponse.model_validate(tenant)
    except ConsoleError as e:
        raise http_exception(e)


@router.get("/super-admin/tenants/{tenant_id}/users", response_model=list[UserResponse])
async def list_tenant_users(tenant_id: int, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            await svc.get_tenant(session, tenant_id)
        except ConsoleError as e:
            raise http_exception(e)
        users = await svc.list_users(session, tenant_id)
        return [UserResponse.model_validate(u) for u in users]


@router.post("/super-admin/users", response_model=UserResponse, status_code=201)
async def create_user_any_tenant(body: SuperAdminUserCreate, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            tenant = await svc.get_tenant(session, body.tenant_id)
            user = await svc.create_tenant_user(
                session, tenant, body.name, body.email, body.password,
                role=body.role, enforce_plan=False,
            )
            return UserResponse.model_validate(user)
    except ConsoleError as e:
        raise http_exception(e)


@router.patch("/super-admin/users/{user_id}", response_model=UserResponse)
async def update_user_any_tenant(user_id: int, body: UserUpdate, _=Depends(require_super_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            user = await svc.update_user(session, user_id, **body.model_dump(exclude_none=True))
            return UserResponse.model_validate(user)
    except ConsoleError as e:
        raise http_exception(e)


# ── Tenant-scoped ──


@router.get("/tenant/users", response_model=list[UserResponse])
async def list_users(ctx: RequestContext = Depends(require_role("admin", "manager"))):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        users = await svc.list_users(session, ctx.tenant_id)
        return [UserResponse.model_validate(u) for u in users]


@router.post("/tenant/users", response_model=UserResponse, status_code=201)
async def create_user(body: UserCreate, ctx: RequestContext = Depends(require_role("admin"))):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            tenant = await svc.get_tenant(session, ctx.tenant_id)
            user = await svc.create_tenant_user(
                session, tenant, body.name, body.email, body.password, role=body.role
            )
            return UserResponse.model_validate(user)
    except ConsoleError as e:
        raise http_exception(e)


@router.patch("/tenant/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int, body: UserUpdate, ctx: RequestContext = Depends(require_role("admin"))
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            user = await svc.update_user(
                session, user_id, tenant_id=ctx.tenant_id,
                **body.model_dump(exclude_none=True),
            )
            return UserResponse.model_validate(user)
    except ConsoleError as e:
        raise http_exception(e)


@router.get("/tenant/limits", response_model=LimitsResponse)
async def tenant_limits(ctx: RequestContext = Depends(require_tenant_user)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        tenant = await svc.get_tenant(session, ctx.tenant_id)
        usage = await svc.usage(session, tenant)
        usage.pop("executions")
        return LimitsResponse(
            plan=tenant.plan, limits=get_plan_limits(tenant.plan), usage=usage
        )
