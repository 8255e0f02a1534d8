"""Signed, time-bounded bearer tokens.

Tokens are stateless: the claims are serialized and signed with
``JWT_SECRET`` through itsdangerous, and the expiry travels inside the
payload so impersonation tokens can live shorter than normal sessions.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

from itsdangerous import BadData, URLSafeTimedSerializer

from thinkvoice_console.common.exceptions import TokenExpiredError, TokenInvalidError

SALT = "thinkvoice-session"

KIND_USER = "user"
KIND_SUPER_ADMIN = "super_admin"
KINDS = (KIND_USER, KIND_SUPER_ADMIN)


@dataclass(frozen=True)
class Identity:
    """Who a token speaks for.

    For tenant users ``tenant_id`` and ``role`` are set. During impersonation
    ``impersonator_id`` holds the super-admin id, so both parties stay
    attributable from the claims alone.
    """

    kind: str
    subject_id: int
    tenant_id: Optional[int] = None
    role: Optional[str] = None
    impersonator_id: Optional[int] = None

    @property
    def is_super_admin(self) -> bool:
        return self.kind == KIND_SUPER_ADMIN

    @property
    def is_impersonation(self) -> bool:
        return self.impersonator_id is not None


def _get_serializer(secret: str | None = None) -> URLSafeTimedSerializer:
    if secret is None:
        from thinkvoice_console.common.config import get_settings
        secret = get_settings().jwt_secret
    return URLSafeTimedSerializer(secret, salt=SALT)


def issue_token(
    identity: Identity, ttl: int | None = None, secret: str | None = None
) -> str:
    """Sign ``identity`` into a bearer token valid for ``ttl`` seconds."""
    if ttl is None:
        from thinkvoice_console.common.config import get_settings
        ttl = get_settings().token_ttl
    payload = {
        "kind": identity.kind,
        "sub": identity.subject_id,
        "tenant_id": identity.tenant_id,
        "role": identity.role,
        "impersonator_id": identity.impersonator_id,
        "exp": time.time() + ttl,
    }
    return _get_serializer(secret).dumps(payload)


def _claims_to_identity(claims: Any) -> Identity:
    if not isinstance(claims, dict):
        raise TokenInvalidError("Malformed token claims")
    kind = claims.get("kind")
    sub = claims.get("sub")
    if kind not in KINDS or not isinstance(sub, int):
        raise TokenInvalidError("Malformed token claims")
    tenant_id = claims.get("tenant_id")
    if kind == KIND_USER and not isinstance(tenant_id, int):
        raise TokenInvalidError("User token without tenant")
    return Identity(
        kind=kind,
        subject_id=sub,
        tenant_id=tenant_id,
        role=claims.get("role"),
        impersonator_id=claims.get("impersonator_id"),
    )


def verify_token(token: str, secret: str | None = None) -> Identity:
    """Decode a bearer token.

    Raises:
        TokenInvalidError: bad signature, garbage, or malformed claims.
        TokenExpiredError: the embedded expiry has passed.
    """
    try:
        claims = _get_serializer(secret).loads(token)
    except BadData as exc:
        raise TokenInvalidError() from exc
    exp = claims.get("exp") if isinstance(claims, dict) else None
    if not isinstance(exp, (int, float)):
        raise TokenInvalidError("Malformed token claims")
    identity = _claims_to_identity(claims)
    if time.time() >= exp:
        raise TokenExpiredError()
    return identity
