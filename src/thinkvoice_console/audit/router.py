"""Audit log API router."""

from fastapi import APIRouter, Depends, Query

from thinkvoice_console.audit.schemas import AuditLogResponse
from thinkvoice_console.common.security import require_super_admin

router = APIRouter(tags=["audit"])


def _get_service():
    from thinkvoice_console.deps import get_audit_service
    return get_audit_service()


def _get_db():
    from thinkvoice_console.deps import get_db
    return get_db()


@router.get("/super-admin/audit-logs", response_model=list[AuditLogResponse])
async def list_audit_logs(
    action: str | None = Query(None),
    tenant_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_super_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        entries = await svc.list_entries(
            session, action=action, tenant_id=tenant_id, limit=limit, offset=offset
        )
        return [AuditLogResponse.model_validate(e) for e in entries]
