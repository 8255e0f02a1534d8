"""Stored platform API keys (``api_configurations``)."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thinkvoice_console.common.config import ConsoleSettings
from thinkvoice_console.common.exceptions import UpstreamApiError
from thinkvoice_console.common.models import utcnow
from thinkvoice_console.voice.models import ApiConfigurationModel

BOLNA_API_KEY = "BOLNA_API_KEY"


def mask_key(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


class ApiKeyStore:
    """Key/value store for platform credentials, saved by super-admins."""

    async def get(self, session: AsyncSession, key: str) -> str | None:
        result = await session.execute(
            select(ApiConfigurationModel).where(ApiConfigurationModel.key == key)
        )
        row = result.scalar_one_or_none()
        return row.value if row else None

    async def set(self, session: AsyncSession, key: str, value: str) -> ApiConfigurationModel:
        result = await session.execute(
            select(ApiConfigurationModel).where(ApiConfigurationModel.key == key)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = ApiConfigurationModel(key=key, value=value)
            session.add(row)
        else:
            row.value = value
            row.updated_at = utcnow()
        await session.flush()
        return row

    async def list_keys(self, session: AsyncSession) -> list[ApiConfigurationModel]:
        result = await session.execute(
            select(ApiConfigurationModel).order_by(ApiConfigurationModel.key)
        )
        return list(result.scalars().all())

    async def resolve_api_key(self, session: AsyncSession, settings: ConsoleSettings) -> str:
        """Stored key first, then the ``BOLNA_API_KEY`` setting."""
        stored = await self.get(session, BOLNA_API_KEY)
        if stored:
            return stored
        if settings.bolna_api_key:
            return settings.bolna_api_key
        raise UpstreamApiError("Bolna API Key not configured", status=401)
