"""Dependency injection singletons for ThinkVoice Console."""

from thinkvoice_console.common.config import get_settings
from thinkvoice_console.common.database import DatabaseManager
from thinkvoice_console.auth.service import CredentialService
from thinkvoice_console.tenants.service import TenantService
from thinkvoice_console.audit.service import AuditService
from thinkvoice_console.impersonation.service import ImpersonationService
from thinkvoice_console.voice.client import VoicePlatformClient
from thinkvoice_console.voice.keys import ApiKeyStore

_db: DatabaseManager | None = None
_credentials: CredentialService | None = None
_tenants: TenantService | None = None
_audit: AuditService | None = None
_impersonation: ImpersonationService | None = None
_keys: ApiKeyStore | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_credential_service() -> CredentialService:
    global _credentials
    if _credentials is None:
        _credentials = CredentialService()
    return _credentials


def get_tenant_service() -> TenantService:
    global _tenants
    if _tenants is None:
        _tenants = TenantService(get_credential_service())
    return _tenants


def get_audit_service() -> AuditService:
    global _audit
    if _audit is None:
        _audit = AuditService()
    return _audit


def get_impersonation_service() -> ImpersonationService:
    global _impersonation
    if _impersonation is None:
        _impersonation = ImpersonationService(
            get_settings(), audit_service=get_audit_service()
        )
    return _impersonation


def get_key_store() -> ApiKeyStore:
    global _keys
    if _keys is None:
        _keys = ApiKeyStore()
    return _keys


async def get_voice_client() -> VoicePlatformClient:
    """Build a platform client with the currently configured API key."""
    settings = get_settings()
    async with get_db().get_session() as session:
        api_key = await get_key_store().resolve_api_key(session, settings)
    return VoicePlatformClient(
        api_key, base_url=settings.bolna_api_url, timeout=settings.bolna_timeout
    )


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _credentials, _tenants, _audit, _impersonation, _keys
    _db = None
    _credentials = None
    _tenants = None
    _audit = None
    _impersonation = None
    _keys = None
