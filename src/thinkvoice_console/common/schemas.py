"""Shared Pydantic schemas for ThinkVoice Console."""

from pydantic import BaseModel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "thinkvoice-console"


class OkResponse(BaseModel):
    ok: bool = True
