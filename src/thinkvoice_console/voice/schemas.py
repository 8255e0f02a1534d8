"""Pydantic schemas for voice-platform proxy endpoints.

Upstream payloads are passed through as-is, so only request bodies that the
console itself validates are modelled here.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class AgentPayload(BaseModel):
    agent_config: dict[str, Any]
    agent_prompts: dict[str, Any]


class CallRequest(BaseModel):
    """Presence of agent_id and recipient_phone_number is checked by the client."""

    agent_id: Optional[str] = None
    recipient_phone_number: Optional[str] = None
    from_phone_number: Optional[str] = None
    user_data: Optional[dict[str, Any]] = None

    model_config = {"extra": "allow"}


class ScheduleBatchRequest(BaseModel):
    scheduled_at: str = Field(..., min_length=1)
    bypass_call_guardrails: bool = False


class CustomModelRequest(BaseModel):
    custom_model_name: str = Field(..., min_length=1)
    custom_model_url: str = Field(..., min_length=1)


class BuyPhoneNumberRequest(BaseModel):
    country: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)


class InboundSetupRequest(BaseModel):
    agent_id: str = Field(..., min_length=1)
    phone_number_id: str = Field(..., min_length=1)
    ivr_config: Optional[Any] = None


class InboundUnlinkRequest(BaseModel):
    phone_number_id: str = Field(..., min_length=1)


class ApiKeySave(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1)


class ApiKeySaved(BaseModel):
    key: str
    updated_at: datetime


class ApiKeyPresence(BaseModel):
    value: bool


class ApiKeyListItem(BaseModel):
    key: str
    masked_value: str
    updated_at: datetime
