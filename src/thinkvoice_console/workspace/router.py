"""Tenant workspace endpoints: phone numbers, campaigns, executions.

Every tenant query here is filtered by the tenant resolved from the caller's
token. The platform webhook has no caller token; its tenant comes from the
agent named in the payload.
"""

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy import select

from thinkvoice_console.common.config import get_settings
from thinkvoice_console.common.errors import http_exception
from thinkvoice_console.common.exceptions import ConsoleError
from thinkvoice_console.common.security import RequestContext, require_role, require_tenant_user
from thinkvoice_console.tenants.service import enforce_limit
from thinkvoice_console.workspace.models import (
    AgentModel,
    CampaignModel,
    ExecutionModel,
    PhoneNumberModel,
)
from thinkvoice_console.workspace.schemas import (
    AgentResponse,
    CampaignCreate,
    CampaignResponse,
    CampaignWithAgent,
    ConversationResponse,
    ExecutionResponse,
    ExecutionWithAgent,
    PhoneNumberCreate,
    PhoneNumberResponse,
    SyncResponse,
    WebhookResponse,
)
from thinkvoice_console.workspace.sync import sync_executions, sync_workspace
from thinkvoice_console.workspace.transcript import transcript_as_dicts
from thinkvoice_console.workspace.webhook import (
    parse_bolna_event,
    record_execution,
    verify_bolna_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenant", tags=["workspace"])


def _get_db():
    from thinkvoice_console.deps import get_db
    return get_db()


async def _get_voice_client():
    from thinkvoice_console.deps import get_voice_client
    return await get_voice_client()


# ── Phone numbers ──


@router.get("/phone-numbers", response_model=list[PhoneNumberResponse])
async def list_phone_numbers(ctx: RequestContext = Depends(require_tenant_user)):
    db = _get_db()
    async with db.get_session() as session:
        result = await session.execute(
            select(PhoneNumberModel)
            .where(PhoneNumberModel.tenant_id == ctx.tenant_id)
            .order_by(PhoneNumberModel.id)
        )
        return [PhoneNumberResponse.model_validate(p) for p in result.scalars().all()]


@router.post("/phone-numbers", response_model=PhoneNumberResponse, status_code=201)
async def create_phone_number(
    body: PhoneNumberCreate, ctx: RequestContext = Depends(require_role("admin", "manager"))
):
    db = _get_db()
    try:
        async with db.get_session() as session:
            await enforce_limit(session, ctx.tenant, PhoneNumberModel, "max_phone_numbers")
            phone = PhoneNumberModel(
                tenant_id=ctx.tenant_id,
                bolna_phone_id=body.bolna_phone_id,
                phone_number=body.phone_number,
                status="active",
            )
            session.add(phone)
            await session.flush()
            return PhoneNumberResponse.model_validate(phone)
    except ConsoleError as e:
        raise http_exception(e)


# ── Campaigns ──


@router.get("/campaigns", response_model=list[CampaignWithAgent])
async def list_campaigns(ctx: RequestContext = Depends(require_tenant_user)):
    db = _get_db()
    async with db.get_session() as session:
        result = await session.execute(
            select(CampaignModel, AgentModel)
            .join(AgentModel, CampaignModel.agent_id == AgentModel.id)
            .where(CampaignModel.tenant_id == ctx.tenant_id)
            .order_by(CampaignModel.id.desc())
        )
        return [
            CampaignWithAgent(
                campaign=CampaignResponse.model_validate(c),
                agent=AgentResponse.model_validate(a),
            )
            for c, a in result.all()
        ]


@router.post("/campaigns", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    body: CampaignCreate, ctx: RequestContext = Depends(require_role("admin", "manager"))
):
    db = _get_db()
    try:
        async with db.get_session() as session:
            result = await session.execute(
                select(AgentModel).where(
                    AgentModel.id == body.agent_id,
                    AgentModel.tenant_id == ctx.tenant_id,
                )
            )
            if result.scalar_one_or_none() is None:
                raise HTTPException(status_code=404, detail="Agent not found")
            await enforce_limit(session, ctx.tenant, CampaignModel, "max_campaigns")
            campaign = CampaignModel(
                tenant_id=ctx.tenant_id,
                agent_id=body.agent_id,
                name=body.name,
                status="draft",
                contacts=body.contacts,
                schedule=body.schedule,
            )
            session.add(campaign)
            await session.flush()
            return CampaignResponse.model_validate(campaign)
    except ConsoleError as e:
        raise http_exception(e)


# ── Executions ──


@router.get("/executions", response_model=list[ExecutionWithAgent])
async def list_executions(ctx: RequestContext = Depends(require_tenant_user)):
    db = _get_db()
    async with db.get_session() as session:
        result = await session.execute(
            select(ExecutionModel, AgentModel)
            .join(AgentModel, ExecutionModel.agent_id == AgentModel.id)
            .where(ExecutionModel.tenant_id == ctx.tenant_id)
            .order_by(ExecutionModel.id.desc())
        )
        return [
            ExecutionWithAgent(
                execution=ExecutionResponse.model_validate(e),
                agent=AgentResponse.model_validate(a),
            )
            for e, a in result.all()
        ]


@router.get("/executions/{execution_id}/conversation", response_model=ConversationResponse)
async def get_conversation(execution_id: int, ctx: RequestContext = Depends(require_tenant_user)):
    db = _get_db()
    async with db.get_session() as session:
        result = await session.execute(
            select(ExecutionModel).where(
                ExecutionModel.id == execution_id,
                ExecutionModel.tenant_id == ctx.tenant_id,
            )
        )
        execution = result.scalar_one_or_none()
        if execution is None:
            raise HTTPException(status_code=404, detail="Execution not found")
        return ConversationResponse(
            execution_id=execution.id,
            turns=transcript_as_dicts(execution.transcript),
            recording_url=execution.recording_url,
        )


# ── Sync ──


@router.post("/sync", response_model=SyncResponse)
async def sync(ctx: RequestContext = Depends(require_role("admin", "manager"))):
    db = _get_db()
    try:
        voice = await _get_voice_client()
        async with db.get_session() as session:
            result = await sync_workspace(
                session, voice, ctx.tenant_id, ctx.tenant.bolna_sub_account_id
            )
    except ConsoleError as e:
        raise http_exception(e)
    return SyncResponse(message="Sync completed", **result)


@router.post("/sync-executions", response_model=SyncResponse)
async def sync_execution_records(ctx: RequestContext = Depends(require_tenant_user)):
    db = _get_db()
    try:
        voice = await _get_voice_client()
        async with db.get_session() as session:
            synced = await sync_executions(
                session, voice, ctx.tenant_id, ctx.tenant.bolna_sub_account_id
            )
    except ConsoleError as e:
        raise http_exception(e)
    return SyncResponse(message="Executions synced successfully", synced_executions=synced)


# ── Platform webhook ──

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/bolna", response_model=WebhookResponse)
async def bolna_webhook(
    request: Request,
    bolna_signature: str = Header("", alias="x-bolna-signature"),
):
    """Record an execution pushed by the voice platform.

    When BOLNA_WEBHOOK_SECRET is set the body must carry a valid
    ``x-bolna-signature``; without a secret every delivery is accepted.
    """
    body = await request.body()
    secret = get_settings().bolna_webhook_secret
    if secret and not verify_bolna_signature(body, bolna_signature, secret):
        logger.warning("Rejected Bolna webhook: invalid or missing signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    db = _get_db()
    try:
        event = parse_bolna_event(data)
        async with db.get_session() as session:
            execution, created = await record_execution(session, event)
    except ConsoleError as e:
        raise http_exception(e)
    return WebhookResponse(message="ok", execution_id=execution.id, created=created)
