"""Inbound execution webhook from the voice platform."""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.common.exceptions import AgentNotFoundError, InvalidInputError
from thinkvoice_console.workspace.models import AgentModel, ExecutionModel

logger = logging.getLogger(__name__)


def verify_bolna_signature(payload: bytes, signature_header: str, webhook_secret: str) -> bool:
    """Verify the hex HMAC-SHA256 of the raw body."""
    if not signature_header or not webhook_secret:
        return False
    computed = hmac.new(webhook_secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature_header)


@dataclass
class ExecutionEvent:
    execution_id: str
    agent_id: str
    transcript: str = ""
    recording_url: Optional[str] = None
    duration: Optional[str] = None


def _first(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return None


def parse_bolna_event(data: dict[str, Any]) -> ExecutionEvent:
    """Pull the execution fields out of the payload shapes the platform sends."""
    execution = data.get("execution") if isinstance(data.get("execution"), dict) else {}
    result = data.get("result") if isinstance(data.get("result"), dict) else {}
    recording = data.get("recording") if isinstance(data.get("recording"), dict) else {}

    execution_id = _first(data.get("execution_id"), data.get("id"), execution.get("id"))
    agent_id = _first(data.get("agent_id"), execution.get("agent_id"), data.get("agent"))
    if not execution_id or not agent_id:
        raise InvalidInputError("Missing execution or agent id")

    duration = _first(data.get("duration"), result.get("duration"))
    return ExecutionEvent(
        execution_id=str(execution_id),
        agent_id=str(agent_id),
        transcript=_first(data.get("transcript"), result.get("transcript")) or "",
        recording_url=_first(
            data.get("recording_url"), result.get("recording_url"), recording.get("url")
        ),
        duration=str(duration) if duration else None,
    )


async def record_execution(session: AsyncSession, event: ExecutionEvent) -> tuple[ExecutionModel, bool]:
    """Insert or update the execution; the tenant comes from the owning agent.

    Returns the row and whether it was created.
    """
    agent = (
        await session.execute(
            select(AgentModel).where(AgentModel.bolna_agent_id == event.agent_id)
        )
    ).scalar_one_or_none()
    if agent is None:
        raise AgentNotFoundError()

    existing = (
        await session.execute(
            select(ExecutionModel).where(
                ExecutionModel.bolna_execution_id == event.execution_id
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        existing.transcript = event.transcript
        existing.recording_url = event.recording_url
        existing.duration = event.duration
        await session.flush()
        return existing, False

    execution = ExecutionModel(
        tenant_id=agent.tenant_id,
        agent_id=agent.id,
        bolna_execution_id=event.execution_id,
        transcript=event.transcript,
        recording_url=event.recording_url,
        duration=event.duration,
    )
    session.add(execution)
    await session.flush()
    logger.info(
        "Recorded execution %s for agent %s", event.execution_id, agent.id,
        extra={"tenant_id": agent.tenant_id},
    )
    return execution, True
