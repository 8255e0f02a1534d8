"""
ConsoleClient SDK: sync client for ThinkVoice Console.

Keeps the caller's session the way the admin UI does: a current slot and a
saved slot, so a super-admin can impersonate a tenant and come back to
their own session without logging in again.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
NORMAL = "normal"
IMPERSONATING = "impersonating"


class ConsoleClientError(Exception):
    """Non-2xx response from the console API."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


@dataclass
class ClientSession:
    """Token plus the principal it was issued for."""

    token: str
    user: dict[str, Any] = field(default_factory=dict)
    tenant: Optional[dict[str, Any]] = None
    super_admin: bool = False


class SessionHolder:
    """Two session slots: ``current`` and ``saved``.

    ``push`` moves the current session into the saved slot and installs a
    new one; ``restore`` brings the saved session back. Restoring with an
    empty saved slot leaves no session at all, which forces a fresh login.
    """

    def __init__(self) -> None:
        self.current: Optional[ClientSession] = None
        self.saved: Optional[ClientSession] = None

    @property
    def state(self) -> str:
        if self.current is None:
            return ANONYMOUS
        if self.saved is not None:
            return IMPERSONATING
        return NORMAL

    def set(self, session: ClientSession) -> None:
        self.current = session
        self.saved = None

    def push(self, session: ClientSession) -> None:
        if self.current is None:
            raise ValueError("Cannot stack a session on an anonymous holder")
        self.saved = self.current
        self.current = session

    def restore(self) -> Optional[ClientSession]:
        if self.saved is None:
            self.clear()
            return None
        self.current, self.saved = self.saved, None
        return self.current

    def clear(self) -> None:
        self.current = None
        self.saved = None


class ConsoleClient:
    """Synchronous HTTP client for ThinkVoice Console."""

    def __init__(
        self,
        server_url: str = "http://localhost:5000",
        timeout: int = 30,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.session = SessionHolder()
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def _auth_headers(self) -> dict[str, str]:
        if self.session.current is None:
            return {}
        return self._bearer(self.session.current.token)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self._http.request(method, path, **kwargs)
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise ConsoleClientError(resp.status_code, str(detail))
        return resp.json()

    # ── Authentication ──

    def login(self, email: str, password: str, tenant_slug: Optional[str] = None) -> ClientSession:
        path = f"/api/tenants/{tenant_slug}/login" if tenant_slug else "/api/auth/login"
        data = self._request("POST", path, json={"email": email, "password": password})
        session = ClientSession(token=data["token"], user=data["user"], tenant=data["tenant"])
        self.session.set(session)
        return session

    def super_admin_login(self, email: str, password: str) -> ClientSession:
        data = self._request(
            "POST", "/api/super-admin/login", json={"email": email, "password": password}
        )
        session = ClientSession(token=data["token"], user=data["admin"], super_admin=True)
        self.session.set(session)
        return session

    def logout(self) -> None:
        self.session.clear()

    # ── Impersonation ──

    def impersonate(self, tenant_id: int) -> ClientSession:
        """Switch into a tenant's admin session, keeping ours in the saved slot."""
        data = self._request(
            "POST",
            f"/api/super-admin/tenants/{tenant_id}/impersonate",
            headers=self._auth_headers(),
        )
        session = ClientSession(token=data["token"], user=data["user"], tenant=data["tenant"])
        self.session.push(session)
        return session

    def stop_impersonation(self) -> Optional[ClientSession]:
        """Return to the saved super-admin session.

        The local switch happens first. The server is then told about it
        with the restored super-admin token; a failed notification is logged
        and does not undo the switch.
        """
        impersonated = self.session.current
        restored = self.session.restore()
        if restored is None or impersonated is None:
            return restored

        body = {
            "tenant_id": (impersonated.tenant or {}).get("id"),
            "admin_id": impersonated.user.get("id"),
        }
        try:
            resp = self._http.post(
                "/api/super-admin/impersonation/stop",
                json=body,
                headers=self._bearer(restored.token),
            )
            if resp.status_code >= 400 or not resp.json().get("ok", False):
                logger.warning("Impersonation stop was not recorded (HTTP %s)", resp.status_code)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Impersonation stop notification failed: %s", e)
        return restored

    # ── Generic access ──

    def get(self, path: str, **params: Any) -> Any:
        return self._request("GET", path, params=params or None, headers=self._auth_headers())

    def post(self, path: str, json: Any = None) -> Any:
        return self._request("POST", path, json=json, headers=self._auth_headers())

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def close(self) -> None:
        self._http.close()
