"""Reconcile local workspace records with the voice platform."""

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.common.exceptions import UpstreamApiError
from thinkvoice_console.voice.client import VoicePlatformClient
from thinkvoice_console.workspace.models import (
    AgentModel,
    CampaignModel,
    ExecutionModel,
    PhoneNumberModel,
)

logger = logging.getLogger(__name__)


def _items(payload: Any) -> list[dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return payload.get("data") or []
    return []


async def sync_executions(
    session: AsyncSession, voice: VoicePlatformClient, tenant_id: int, sub_account_id: str
) -> int:
    """Copy unseen executions of every tenant agent. Returns the number added."""
    result = await session.execute(select(AgentModel).where(AgentModel.tenant_id == tenant_id))
    synced = 0
    for agent in result.scalars().all():
        try:
            page = await voice.list_agent_executions(
                sub_account_id, agent.bolna_agent_id, {"page_size": 100, "page_number": 1}
            )
        except UpstreamApiError as exc:
            logger.warning("Skipping executions of agent %s: %s", agent.id, exc.message)
            continue
        for item in _items(page):
            execution_id = item.get("id") or item.get("execution_id")
            if not execution_id:
                continue
            existing = await session.execute(
                select(ExecutionModel.id).where(
                    ExecutionModel.bolna_execution_id == str(execution_id)
                )
            )
            if existing.first() is not None:
                continue
            duration = item.get("conversation_time") or item.get("duration")
            session.add(
                ExecutionModel(
                    tenant_id=tenant_id,
                    agent_id=agent.id,
                    bolna_execution_id=str(execution_id),
                    transcript=item.get("transcript") or "",
                    recording_url=(item.get("telephony_data") or {}).get("recording_url")
                    or item.get("recording_url"),
                    duration=str(duration) if duration is not None else None,
                )
            )
            synced += 1
    await session.flush()
    return synced


async def sync_workspace(
    session: AsyncSession, voice: VoicePlatformClient, tenant_id: int, sub_account_id: str
) -> dict[str, int]:
    """Drop local agents and phone numbers the platform no longer knows, then sync executions."""
    remote_agents = {
        str(a.get("agent_id") or a.get("id")) for a in _items(await voice.list_agents(sub_account_id))
    }
    deleted_agents = 0
    result = await session.execute(select(AgentModel).where(AgentModel.tenant_id == tenant_id))
    for agent in result.scalars().all():
        if agent.bolna_agent_id in remote_agents:
            continue
        campaigns = await session.execute(
            select(CampaignModel.id).where(CampaignModel.agent_id == agent.id).limit(1)
        )
        if campaigns.first() is not None:
            logger.info("Keeping agent %s: still used by a campaign", agent.id)
            continue
        await session.execute(delete(ExecutionModel).where(ExecutionModel.agent_id == agent.id))
        await session.delete(agent)
        deleted_agents += 1

    deleted_phones = 0
    try:
        listing = await voice.list_phone_numbers(sub_account_id, fallback=False)
    except UpstreamApiError as exc:
        if exc.status not in (401, 404):
            raise
        # No authoritative remote list; local numbers stay as they are.
        logger.warning(
            "Skipping phone number sync for tenant %s: %s", tenant_id, exc.message,
            extra={"tenant_id": tenant_id},
        )
    else:
        remote_phones = {str(p.get("phone_number_id") or p.get("id")) for p in _items(listing)}
        result = await session.execute(
            select(PhoneNumberModel).where(
                PhoneNumberModel.tenant_id == tenant_id,
                PhoneNumberModel.bolna_phone_id.is_not(None),
            )
        )
        for phone in result.scalars().all():
            if phone.bolna_phone_id not in remote_phones:
                await session.delete(phone)
                deleted_phones += 1
    await session.flush()

    synced = await sync_executions(session, voice, tenant_id, sub_account_id)
    logger.info(
        "Synced tenant %s: %d agents removed, %d phone numbers removed, %d executions added",
        tenant_id, deleted_agents, deleted_phones, synced,
        extra={"tenant_id": tenant_id},
    )
    return {
        "deleted_agents": deleted_agents,
        "deleted_phones": deleted_phones,
        "synced_executions": synced,
    }
