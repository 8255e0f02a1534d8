"""Pydantic schemas for impersonation endpoints."""

from typing import Optional

from pydantic import BaseModel

from thinkvoice_console.auth.schemas import SessionTenant, SessionUser


class ImpersonationResponse(BaseModel):
    token: str
    user: SessionUser
    tenant: SessionTenant
    expires_in: int


class StopImpersonationRequest(BaseModel):
    tenant_id: Optional[int] = None
    admin_id: Optional[int] = None


class StopImpersonationResponse(BaseModel):
    ok: bool
