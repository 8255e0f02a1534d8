"""Pydantic schemas for audit log API responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: int
    action: str
    admin_id: Optional[int] = None
    impersonator_id: Optional[int] = None
    tenant_id: Optional[int] = None
    details: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}
