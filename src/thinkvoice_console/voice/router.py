"""Voice-platform proxy endpoints.

Every call is scoped to the sub-account of the caller's tenant. Upstream
errors are returned with the platform's status and message.
"""

import csv
import io
import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from thinkvoice_console.common.errors import http_exception
from thinkvoice_console.common.exceptions import ConsoleError
from thinkvoice_console.common.schemas import OkResponse
from thinkvoice_console.common.security import (
    RequestContext,
    require_role,
    require_super_admin,
    require_tenant_user,
)
from thinkvoice_console.tenants.service import enforce_limit
from thinkvoice_console.voice.client import VoicePlatformClient
from thinkvoice_console.voice.keys import mask_key
from thinkvoice_console.voice.schemas import (
    AgentPayload,
    ApiKeyListItem,
    ApiKeyPresence,
    ApiKeySave,
    ApiKeySaved,
    BuyPhoneNumberRequest,
    CallRequest,
    CustomModelRequest,
    InboundSetupRequest,
    InboundUnlinkRequest,
    ScheduleBatchRequest,
)
from thinkvoice_console.workspace.models import AgentModel
from thinkvoice_console.workspace.schemas import AgentResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["voice"])

EXPORT_COLUMNS = [
    "execution_id",
    "to_number",
    "from_number",
    "provider",
    "direction",
    "duration",
    "status",
    "total_cost",
    "created_at",
]


def _get_db():
    from thinkvoice_console.deps import get_db
    return get_db()


def _get_key_store():
    from thinkvoice_console.deps import get_key_store
    return get_key_store()


async def _get_voice_client() -> VoicePlatformClient:
    from thinkvoice_console.deps import get_voice_client
    return await get_voice_client()


async def _proxy(call: Callable[[VoicePlatformClient], Awaitable[Any]]) -> Any:
    try:
        voice = await _get_voice_client()
        return await call(voice)
    except ConsoleError as e:
        raise http_exception(e)


def _sub(ctx: RequestContext) -> str:
    return ctx.tenant.bolna_sub_account_id


def _csv_response(content: str | bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Agents ──


@router.get("/bolna/agents")
async def list_agents(ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.list_agents(_sub(ctx))) or []


@router.post("/bolna/agents", response_model=AgentResponse, status_code=201)
async def create_agent(
    body: AgentPayload, ctx: RequestContext = Depends(require_role("admin", "manager"))
):
    db = _get_db()
    try:
        async with db.get_session() as session:
            await enforce_limit(session, ctx.tenant, AgentModel, "max_agents")
        voice = await _get_voice_client()
        created = await voice.create_agent(_sub(ctx), body.model_dump())
        bolna_agent_id = None
        if isinstance(created, dict):
            bolna_agent_id = created.get("agent_id") or created.get("id")
        if not bolna_agent_id:
            raise HTTPException(status_code=502, detail="Failed to create agent in Bolna")

        async with db.get_session() as session:
            agent = AgentModel(
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                bolna_agent_id=str(bolna_agent_id),
                agent_name=body.agent_config.get("agent_name", ""),
                status="created",
                agent_config=body.agent_config,
                agent_prompts=body.agent_prompts,
            )
            session.add(agent)
            await session.flush()
            return AgentResponse.model_validate(agent)
    except ConsoleError as e:
        raise http_exception(e)


@router.get("/bolna/agents/{agent_id}")
async def get_agent(agent_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.get_agent(_sub(ctx), agent_id))


@router.put("/bolna/agents/{agent_id}")
async def update_agent(
    agent_id: str,
    body: AgentPayload,
    ctx: RequestContext = Depends(require_role("admin", "manager")),
):
    return await _proxy(lambda v: v.update_agent(_sub(ctx), agent_id, body.model_dump()))


@router.post("/bolna/agents/{agent_id}/stop", response_model=OkResponse)
async def stop_agent(agent_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    await _proxy(lambda v: v.stop_agent(_sub(ctx), agent_id))
    return OkResponse()


@router.get("/bolna/agents/{agent_id}/executions")
async def list_agent_executions(
    agent_id: str,
    page_number: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    status: Optional[str] = None,
    call_type: Optional[str] = None,
    provider: Optional[str] = None,
    answered_by_voice_mail: Optional[bool] = None,
    batch_id: Optional[str] = None,
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    ctx: RequestContext = Depends(require_tenant_user),
):
    # "all" in a select box means no filter
    filters = {
        "page_number": page_number,
        "page_size": page_size,
        "status": None if status == "all" else status,
        "call_type": None if call_type == "all" else call_type,
        "provider": None if provider == "all" else provider,
        "answered_by_voice_mail": answered_by_voice_mail,
        "batch_id": None if batch_id == "all" else batch_id,
        "from": from_,
        "to": to,
    }
    result = await _proxy(lambda v: v.list_agent_executions(_sub(ctx), agent_id, filters))
    return result or {"data": []}


@router.get("/bolna/agents/{agent_id}/batches")
async def list_agent_batches(agent_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.list_agent_batches(_sub(ctx), agent_id)) or []


@router.get("/bolna/agents/{agent_id}/export")
async def export_agent_executions(
    agent_id: str,
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    ctx: RequestContext = Depends(require_tenant_user),
):
    """All executions of an agent as CSV, following ``has_more`` pagination."""
    filters: dict[str, Any] = {"from": from_, "to": to, "page_size": 100, "page_number": 1}
    rows: list[dict] = []
    while True:
        page = await _proxy(lambda v: v.list_agent_executions(_sub(ctx), agent_id, filters))
        if not isinstance(page, dict) or not page.get("data"):
            break
        rows.extend(page["data"])
        if not page.get("has_more"):
            break
        filters["page_number"] += 1

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for e in rows:
        telephony = e.get("telephony_data") or {}
        writer.writerow([
            e.get("id", ""),
            telephony.get("to_number") or "",
            telephony.get("from_number") or "",
            telephony.get("provider") or "",
            telephony.get("direction") or "",
            e.get("conversation_time") or "",
            e.get("status") or "",
            "" if e.get("total_cost") is None else e["total_cost"],
            e.get("created_at") or "",
        ])
    return _csv_response(buffer.getvalue(), f"agent-{agent_id}-executions.csv")


# ── Calls and executions ──


@router.post("/bolna/calls")
async def make_call(body: CallRequest, ctx: RequestContext = Depends(require_tenant_user)):
    payload = body.model_dump(exclude_none=True)
    return await _proxy(lambda v: v.make_call(_sub(ctx), payload))


@router.post("/bolna/calls/{execution_id}/stop")
@router.post("/bolna/call/{execution_id}/stop", include_in_schema=False)
async def stop_call(execution_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.stop_call(_sub(ctx), execution_id))


@router.get("/bolna/executions")
async def list_all_executions(ctx: RequestContext = Depends(require_tenant_user)):
    # The platform only lists executions per agent.
    return {"data": [], "message": "Please select a specific agent to view executions"}


@router.get("/bolna/executions/{execution_id}")
async def get_execution(
    execution_id: str,
    agent_id: str = Query(..., min_length=1),
    ctx: RequestContext = Depends(require_tenant_user),
):
    execution = await _proxy(lambda v: v.get_execution(_sub(ctx), agent_id, execution_id))
    if not execution:
        raise HTTPException(status_code=404, detail="Execution not found")
    return execution


@router.get("/bolna/executions/{execution_id}/log")
async def get_execution_logs(execution_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.get_execution_logs(_sub(ctx), execution_id)) or {"data": []}


# ── Batches ──


@router.post("/bolna/batches")
async def create_batch(
    agent_id: str = Form(...),
    file: UploadFile = File(...),
    from_phone_number: Optional[str] = Form(None),
    retry_config: Optional[str] = Form(None),
    webhook_url: Optional[str] = Form(None),
    ctx: RequestContext = Depends(require_tenant_user),
):
    content = await file.read()
    return await _proxy(
        lambda v: v.create_batch(
            _sub(ctx), agent_id, content, file.filename or "batch.csv",
            from_phone_number=from_phone_number,
            retry_config=retry_config,
            webhook_url=webhook_url,
        )
    )


@router.get("/bolna/batches/{batch_id}/executions")
async def list_batch_executions(batch_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.list_batch_executions(_sub(ctx), batch_id)) or []


@router.post("/bolna/batches/{batch_id}/schedule")
async def schedule_batch(
    batch_id: str, body: ScheduleBatchRequest, ctx: RequestContext = Depends(require_tenant_user)
):
    result = await _proxy(
        lambda v: v.schedule_batch(
            _sub(ctx), batch_id, body.scheduled_at, body.bypass_call_guardrails
        )
    )
    return result or {"message": "scheduled"}


@router.post("/bolna/batches/{batch_id}/stop")
async def stop_batch(batch_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.stop_batch(_sub(ctx), batch_id)) or {"message": "stopped"}


@router.get("/bolna/batches/{batch_id}/download")
async def download_batch(batch_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    content = await _proxy(lambda v: v.download_batch(_sub(ctx), batch_id))
    if not content:
        raise HTTPException(status_code=404, detail="Batch file not available")
    return _csv_response(content, f"batch-{batch_id}.csv")


@router.delete("/bolna/batches/{batch_id}")
async def delete_batch(batch_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.delete_batch(_sub(ctx), batch_id)) or {"message": "deleted"}


# ── Voices and models ──


@router.get("/bolna/voices")
async def list_voices(ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.get_voices(_sub(ctx))) or []


@router.get("/bolna/models")
async def list_models(ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.get_models(_sub(ctx))) or {}


@router.post("/bolna/models/custom")
async def add_custom_model(
    body: CustomModelRequest, ctx: RequestContext = Depends(require_tenant_user)
):
    return await _proxy(
        lambda v: v.add_custom_model(_sub(ctx), body.custom_model_name, body.custom_model_url)
    )


# ── Phone numbers and inbound ──


@router.get("/bolna/phone-numbers")
async def list_phone_numbers(ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.list_phone_numbers(_sub(ctx))) or []


@router.get("/bolna/phone-numbers/search")
async def search_phone_numbers(
    country: str = Query(..., min_length=1),
    pattern: Optional[str] = None,
    ctx: RequestContext = Depends(require_tenant_user),
):
    return await _proxy(lambda v: v.search_phone_numbers(_sub(ctx), country, pattern)) or []


@router.post("/bolna/phone-numbers/buy")
async def buy_phone_number(
    body: BuyPhoneNumberRequest, ctx: RequestContext = Depends(require_role("admin", "manager"))
):
    return await _proxy(lambda v: v.buy_phone_number(_sub(ctx), body.country, body.phone_number))


@router.post("/bolna/inbound/setup")
async def setup_inbound(body: InboundSetupRequest, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(
        lambda v: v.setup_inbound(_sub(ctx), body.agent_id, body.phone_number_id, body.ivr_config)
    )


@router.post("/bolna/inbound/unlink")
async def unlink_inbound(body: InboundUnlinkRequest, ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.unlink_inbound(_sub(ctx), body.phone_number_id))


# ── Knowledgebases ──


@router.get("/bolna/knowledgebase")
async def list_knowledgebases(ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.list_knowledgebases(_sub(ctx))) or []


@router.post("/bolna/knowledgebase")
async def create_knowledgebase(
    url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    chunk_size: Optional[int] = Form(None),
    similarity_top_k: Optional[int] = Form(None),
    overlapping: Optional[int] = Form(None),
    ctx: RequestContext = Depends(require_tenant_user),
):
    content = await file.read() if file is not None else None
    filename = (file.filename if file is not None else None) or "upload.pdf"
    return await _proxy(
        lambda v: v.create_knowledgebase(
            _sub(ctx), url=url, file_content=content, filename=filename,
            chunk_size=chunk_size, similarity_top_k=similarity_top_k,
            overlapping=overlapping,
        )
    )


@router.delete("/bolna/knowledgebase/{rag_id}")
async def delete_knowledgebase(rag_id: str, ctx: RequestContext = Depends(require_tenant_user)):
    result = await _proxy(lambda v: v.delete_knowledgebase(_sub(ctx), rag_id))
    return result or {"message": "Knowledgebase deleted successfully"}


# ── Account ──


@router.get("/bolna/account")
async def account_info(ctx: RequestContext = Depends(require_tenant_user)):
    return await _proxy(lambda v: v.get_account_info(_sub(ctx)))


# ── API keys ──


@router.get("/keys/{key}", response_model=ApiKeyPresence)
async def key_status(key: str):
    """Whether a key is stored. The value itself is never returned."""
    store = _get_key_store()
    db = _get_db()
    async with db.get_session() as session:
        return ApiKeyPresence(value=bool(await store.get(session, key)))


@router.post("/keys", response_model=ApiKeySaved)
async def save_key(body: ApiKeySave, admin=Depends(require_super_admin)):
    store = _get_key_store()
    db = _get_db()
    async with db.get_session() as session:
        saved = await store.set(session, body.key, body.value)
        logger.info(
            "API key %s (%s) saved by super admin %s", saved.key, mask_key(saved.value), admin.id
        )
        return ApiKeySaved(key=saved.key, updated_at=saved.updated_at)


@router.get("/keys", response_model=list[ApiKeyListItem])
async def list_keys(_=Depends(require_super_admin)):
    store = _get_key_store()
    db = _get_db()
    async with db.get_session() as session:
        return [
            ApiKeyListItem(key=row.key, masked_value=mask_key(row.value), updated_at=row.updated_at)
            for row in await store.list_keys(session)
        ]
