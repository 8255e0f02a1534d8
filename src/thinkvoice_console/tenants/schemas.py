"""Pydantic schemas for tenant and user endpoints."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from thinkvoice_console.common.schemas import EMAIL_PATTERN

Role = Literal["admin", "manager", "agent"]
Plan = Literal["starter", "pro", "enterprise"]


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
    admin_name: str = Field(..., min_length=1, max_length=255)
    admin_email: str = Field(..., pattern=EMAIL_PATTERN)
    admin_password: str = Field(..., min_length=6)
    plan: Plan = "starter"
    sub_account_id: Optional[str] = None


class TenantResponse(BaseModel):
    id: int
    name: str
    slug: str
    bolna_sub_account_id: str
    plan: str
    status: str
    settings: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantUpdate(BaseModel):
    name: Optional[str] = None
    plan: Optional[Plan] = None
    status: Optional[Literal["active", "suspended", "cancelled"]] = None
    sub_account_id: Optional[str] = None


class UserResponse(BaseModel):
    """A user as exposed over the API. The password hash is never included."""
    id: int
    tenant_id: int
    name: str
    email: str
    role: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantCreateResponse(BaseModel):
    tenant: TenantResponse
    admin: UserResponse


class UsageCounter(BaseModel):
    current: int
    limit: int


class TenantDetailResponse(BaseModel):
    tenant: TenantResponse
    usage: dict[str, UsageCounter]
    plan_limits: dict[str, Any]


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    role: Role = "agent"


class SuperAdminUserCreate(UserCreate):
    tenant_id: int


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    role: Optional[Role] = None
    status: Optional[Literal["active", "inactive", "suspended"]] = None
    password: Optional[str] = Field(None, min_length=6)


class LimitsResponse(BaseModel):
    plan: str
    limits: dict[str, Any]
    usage: dict[str, UsageCounter]
