"""Pydantic schemas for login and identity endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class SessionUser(BaseModel):
    id: int
    name: str
    email: str
    role: str
    tenant_id: int


class SessionTenant(BaseModel):
    id: int
    name: str
    slug: str
    plan: str
    status: str


class LoginResponse(BaseModel):
    token: str
    user: SessionUser
    tenant: SessionTenant


class MeResponse(BaseModel):
    user: SessionUser
    tenant: SessionTenant
    impersonator_id: Optional[int] = None


class SuperAdminResponse(BaseModel):
    id: int
    email: str
    name: str

    model_config = {"from_attributes": True}


class SuperAdminLoginResponse(BaseModel):
    token: str
    admin: SuperAdminResponse
