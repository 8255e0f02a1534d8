"""Pydantic schemas for tenant workspace endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class PhoneNumberCreate(BaseModel):
    phone_number: str = Field(..., min_length=3, max_length=50)
    bolna_phone_id: Optional[str] = None


class PhoneNumberResponse(BaseModel):
    id: int
    tenant_id: int
    bolna_phone_id: Optional[str] = None
    phone_number: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AgentResponse(BaseModel):
    id: int
    tenant_id: int
    user_id: Optional[int] = None
    bolna_agent_id: str
    agent_name: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    agent_id: int
    contacts: list[dict[str, Any]] = []
    schedule: dict[str, Any] = {}


class CampaignResponse(BaseModel):
    id: int
    tenant_id: int
    agent_id: int
    name: str
    status: str
    contacts: list[dict[str, Any]] = []
    schedule: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class CampaignWithAgent(BaseModel):
    campaign: CampaignResponse
    agent: AgentResponse


class ExecutionResponse(BaseModel):
    id: int
    tenant_id: int
    agent_id: int
    bolna_execution_id: str
    transcript: Optional[str] = ""
    recording_url: Optional[str] = None
    duration: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ExecutionWithAgent(BaseModel):
    execution: ExecutionResponse
    agent: AgentResponse


class ConversationTurn(BaseModel):
    speaker: str
    message: str


class ConversationResponse(BaseModel):
    execution_id: int
    turns: list[ConversationTurn]
    recording_url: Optional[str] = None


class SyncResponse(BaseModel):
    message: str
    deleted_agents: int = 0
    deleted_phones: int = 0
    synced_executions: int = 0


class WebhookResponse(BaseModel):
    message: str
    execution_id: int
    created: bool
