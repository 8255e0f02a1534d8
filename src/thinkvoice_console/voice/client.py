"""Async HTTP client for the Bolna voice platform.

Every call carries the master API key as a bearer credential; tenant
scoping travels in the ``X-Sub-Account-Id`` header. Responses are passed
through unchanged. Non-2xx answers raise ``UpstreamApiError`` with the
platform's own message and status. There is no retry or caching.
"""

import json
import logging
import re
from urllib.parse import quote
from typing import Any, Optional

import httpx

from thinkvoice_console.common.exceptions import UpstreamApiError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.bolna.ai"

MODEL_ENDPOINTS = (
    "/user/model/all",
    "/v2/model/all",
    "/v1/model/all",
    "/model/all",
    "/v2/models",
    "/models",
    "/user/models",
)

FALLBACK_VOICES: list[dict[str, Any]] = [
    {"id": "v1", "voice_id": "rachel", "provider": "elevenlabs", "name": "Rachel",
     "model": "eleven_turbo_v2_5", "accent": "en-US (female)"},
    {"id": "v2", "voice_id": "matthew", "provider": "polly", "name": "Matthew",
     "model": "polly-matthew", "accent": "en-US (male)"},
    {"id": "v3", "voice_id": "asteria", "provider": "deepgram", "name": "Asteria",
     "model": "aura-asteria-en", "accent": "en-US (female)"},
]

FALLBACK_MODELS: dict[str, list[dict[str, Any]]] = {
    "llmModels": [
        {"library": "openai", "provider": "openai", "deprecated": False, "base_url": None,
         "model": "gpt-4.1-mini", "display_name": "gpt-4.1-mini", "family": "openai"},
        {"library": "openai", "provider": "openai", "deprecated": False, "base_url": None,
         "model": "gpt-4.1", "display_name": "gpt-4.1", "family": "openai"},
        {"library": "openai", "provider": "openai", "deprecated": False, "base_url": None,
         "model": "gpt-4o-mini", "display_name": "gpt-4o mini", "family": "openai"},
        {"library": "openai", "provider": "openai", "deprecated": False, "base_url": None,
         "model": "gpt-4o", "display_name": "gpt-4o", "family": "openai"},
        {"library": "openai", "provider": "openai", "deprecated": False, "base_url": None,
         "model": "gpt-3.5-turbo", "display_name": "gpt-3.5-turbo", "family": "openai"},
        {"library": "", "provider": "azure", "deprecated": False,
         "base_url": "https://bolna-ai-models.cognitiveservices.azure.com",
         "model": "azure/gpt-4.1-mini", "display_name": "gpt-4.1-mini cluster",
         "family": "azure-openai"},
        {"library": "", "provider": "azure", "deprecated": False,
         "base_url": "https://bolna-ai-models.cognitiveservices.azure.com",
         "model": "azure/gpt-4o", "display_name": "gpt-4o cluster", "family": "azure-openai"},
        {"library": None, "provider": "openrouter", "deprecated": False,
         "base_url": "https://openrouter.ai/api/v1/chat/completions",
         "model": "openai/gpt-oss-120b", "display_name": "gpt-oss-120b",
         "family": "openrouter-openai"},
        {"library": "litellm", "provider": "deepseek", "deprecated": False,
         "base_url": "https://api.deepseek.com/v1", "model": "deepseek/deepseek-chat",
         "display_name": "deepseek-chat", "family": "deepseek"},
        {"library": None, "provider": "anthropic", "deprecated": False, "base_url": None,
         "model": "claude-sonnet-4-20250514", "display_name": "sonnet-4", "family": "anthropic"},
    ],
    "asrs": [
        {"id": "564f91ea-f4dc-45b3-9223-0ee131d9ee5a", "model": "nova-3", "name": "nova-3",
         "provider": "deepgram", "languages": ["multi-hi", "en", "hi"]},
        {"id": "6fcf78da-b360-4b41-b882-fe84b90256ed", "model": "nova-2", "name": "nova-2",
         "provider": "deepgram", "languages": ["en", "hi", "fr"]},
    ],
}

EXECUTION_FILTERS = (
    "page_number",
    "page_size",
    "status",
    "call_type",
    "provider",
    "answered_by_voice_mail",
    "batch_id",
    "from",
    "to",
)

_MILLIS_UTC = re.compile(r"\.\d{3}Z$")
_FRACTION = re.compile(r"\.\d+(?=[+-]\d{2}:\d{2}$|$)")


def normalize_schedule_time(value: str) -> str:
    """Bring an ISO timestamp into the form the batch scheduler accepts.

    ``2025-01-01T10:00:00.000Z`` becomes ``2025-01-01T10:00:00+00:00``;
    otherwise fractional seconds are dropped.
    """
    value = value.strip()
    if value.endswith("Z"):
        return _MILLIS_UTC.sub("+00:00", value)
    return _FRACTION.sub("", value, count=1)


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Bolna API Error {response.status_code}"
    if isinstance(body, dict) and body.get("message") is not None:
        message = body["message"]
    else:
        message = body
    if isinstance(message, str):
        return message
    return json.dumps(message)


def _body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


def _voice_list(voices: Any) -> list[dict[str, Any]]:
    if isinstance(voices, list):
        return voices
    if isinstance(voices, dict):
        return voices.get("voices") or voices.get("data") or []
    return []


class VoicePlatformClient:
    """Thin forwarding client. One instance per API key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        sub_account_id: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if sub_account_id:
            headers["X-Sub-Account-Id"] = sub_account_id
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                resp = await client.request(method, path, headers=headers, **kwargs)
            except httpx.HTTPError as exc:
                logger.warning("Bolna %s %s unreachable: %r", method, path, exc)
                raise UpstreamApiError(
                    str(exc) or "Bolna API unreachable", status=502
                ) from exc
        if resp.is_error:
            message = error_message(resp)
            logger.warning(
                "Bolna %s %s failed: %s %s", method, path, resp.status_code, message
            )
            raise UpstreamApiError(message, status=resp.status_code)
        return resp

    async def _call(self, method: str, path: str, sub_account_id: Optional[str] = None, **kwargs: Any) -> Any:
        return _body(await self._request(method, path, sub_account_id, **kwargs))

    # ── Account ──

    async def create_sub_account(self, name: str, email: str, **options: Any) -> Any:
        payload = {
            "name": name,
            "allow_concurrent_calls": 10,
            "multi_tenant": False,
            "db_host": None,
            "db_name": None,
            "db_port": None,
            "db_user": None,
            "db_password": None,
            "email": email,
        }
        payload.update(options)
        return await self._call("POST", "/sub-accounts/create", json=payload)

    async def get_account_info(self, sub_account_id: Optional[str] = None) -> Any:
        return await self._call("GET", "/user/me", sub_account_id)

    # ── Agents ──

    async def list_agents(self, sub_account_id: Optional[str] = None) -> Any:
        return await self._call("GET", "/v2/agent/all", sub_account_id)

    async def get_agent(self, sub_account_id: str, agent_id: str) -> Any:
        return await self._call("GET", f"/v2/agent/{agent_id}", sub_account_id)

    async def _correct_voice_providers(self, sub_account_id: str, synthesizers: list[dict]) -> None:
        """Align each synthesizer's provider with the provider of its voice_id."""
        wanted = [s for s in synthesizers if (s.get("provider_config") or {}).get("voice_id")]
        if not wanted:
            return
        voices = _voice_list(await self.get_voices(sub_account_id))
        by_id = {v.get("voice_id") or v.get("id"): v for v in voices}
        for synth in wanted:
            voice_id = synth["provider_config"]["voice_id"]
            voice = by_id.get(voice_id)
            if voice and voice.get("provider") and synth.get("provider") != voice["provider"]:
                logger.info(
                    "Correcting provider %r to %r for voice %s",
                    synth.get("provider"), voice["provider"], voice_id,
                )
                synth["provider"] = voice["provider"]

    @staticmethod
    def _task_synthesizers(payload: dict) -> list[dict]:
        tasks = (payload.get("agent_config") or {}).get("tasks") or []
        return [
            t["tools_config"]["synthesizer"]
            for t in tasks
            if isinstance(t, dict)
            and isinstance(t.get("tools_config"), dict)
            and isinstance(t["tools_config"].get("synthesizer"), dict)
        ]

    async def create_agent(self, sub_account_id: str, payload: dict) -> Any:
        config = payload.get("agent_config")
        if not config or not payload.get("agent_prompts"):
            raise UpstreamApiError("Missing required fields: agent_config and agent_prompts", 400)
        if not config.get("agent_name"):
            raise UpstreamApiError("Missing required field: agent_config.agent_name", 400)
        tasks = config.get("tasks")
        if not isinstance(tasks, list) or not tasks:
            raise UpstreamApiError(
                "Missing required field: agent_config.tasks (must be non-empty array)", 400
            )
        await self._correct_voice_providers(sub_account_id, self._task_synthesizers(payload))
        return await self._call("POST", "/v2/agent", sub_account_id, json=payload)

    async def update_agent(self, sub_account_id: str, agent_id: str, payload: dict) -> Any:
        await self._correct_voice_providers(sub_account_id, self._task_synthesizers(payload))
        return await self._call("PUT", f"/v2/agent/{agent_id}", sub_account_id, json=payload)

    async def stop_agent(self, sub_account_id: str, agent_id: str) -> Any:
        """Stop every queued call for an agent."""
        return await self._call("POST", f"/v2/agent/{agent_id}/stop", sub_account_id, json={})

    # ── Calls and executions ──

    async def make_call(self, sub_account_id: str, payload: dict) -> Any:
        if not payload.get("agent_id") or not payload.get("recipient_phone_number"):
            raise UpstreamApiError(
                "Missing required fields: agent_id and recipient_phone_number", 400
            )
        return await self._call("POST", "/call", sub_account_id, json=payload)

    async def stop_call(self, sub_account_id: str, execution_id: str) -> Any:
        return await self._call("POST", f"/call/{execution_id}/stop", sub_account_id, json={})

    async def list_agent_executions(
        self, sub_account_id: str, agent_id: str, filters: dict[str, Any] | None = None
    ) -> Any:
        params = {}
        for name in EXECUTION_FILTERS:
            value = (filters or {}).get(name)
            if value is None or value == "":
                continue
            params[name] = str(value).lower() if isinstance(value, bool) else value
        return await self._call(
            "GET", f"/v2/agent/{agent_id}/executions", sub_account_id, params=params
        )

    async def get_execution(self, sub_account_id: str, agent_id: str, execution_id: str) -> Any:
        return await self._call(
            "GET", f"/agent/{agent_id}/execution/{execution_id}", sub_account_id
        )

    async def get_execution_logs(self, sub_account_id: str, execution_id: str) -> Any:
        return await self._call("GET", f"/executions/{execution_id}/log", sub_account_id)

    # ── Batches ──

    async def list_agent_batches(self, sub_account_id: str, agent_id: str) -> Any:
        return await self._call("GET", f"/batches/{agent_id}/all", sub_account_id)

    async def list_batch_executions(self, sub_account_id: str, batch_id: str) -> Any:
        return await self._call("GET", f"/batches/{batch_id}/executions", sub_account_id)

    async def create_batch(
        self,
        sub_account_id: str,
        agent_id: str,
        file_content: bytes,
        filename: str,
        from_phone_number: Optional[str] = None,
        retry_config: Optional[str] = None,
        webhook_url: Optional[str] = None,
    ) -> Any:
        data = {"agent_id": agent_id}
        if from_phone_number:
            data["from_phone_number"] = from_phone_number
        if retry_config:
            data["retry_config"] = retry_config
        if webhook_url:
            data["webhook_url"] = webhook_url
        files = {"file": (filename, file_content, "text/csv")}
        return await self._call("POST", "/batches", sub_account_id, data=data, files=files)

    async def schedule_batch(
        self,
        sub_account_id: str,
        batch_id: str,
        scheduled_at: str,
        bypass_call_guardrails: bool = False,
    ) -> Any:
        data = {"scheduled_at": normalize_schedule_time(scheduled_at)}
        if bypass_call_guardrails:
            data["bypass_call_guardrails"] = "true"
        return await self._call(
            "POST", f"/batches/{batch_id}/schedule", sub_account_id, data=data
        )

    async def stop_batch(self, sub_account_id: str, batch_id: str) -> Any:
        return await self._call("POST", f"/batches/{batch_id}/stop", sub_account_id, json={})

    async def download_batch(self, sub_account_id: str, batch_id: str) -> bytes:
        resp = await self._request("GET", f"/batches/{batch_id}/download", sub_account_id)
        return resp.content

    async def delete_batch(self, sub_account_id: str, batch_id: str) -> Any:
        return await self._call("DELETE", f"/batches/{batch_id}", sub_account_id)

    # ── Voices and models ──

    async def get_voices(self, sub_account_id: Optional[str] = None) -> Any:
        try:
            return await self._call("GET", "/me/voices", sub_account_id)
        except UpstreamApiError as exc:
            if exc.status != 404:
                raise
            logger.warning("/me/voices returned 404, using fallback voices")
            return [dict(v) for v in FALLBACK_VOICES]

    async def get_models(self, sub_account_id: Optional[str] = None) -> Any:
        """Try the known model endpoints in order, scoped then unscoped."""
        scopes = [sub_account_id, None] if sub_account_id else [None]
        for scope in scopes:
            for path in MODEL_ENDPOINTS:
                try:
                    return await self._call("GET", path, scope)
                except UpstreamApiError as exc:
                    if exc.status != 404:
                        raise
        logger.warning("No model endpoint answered, using fallback model list")
        return {name: [dict(m) for m in items] for name, items in FALLBACK_MODELS.items()}

    async def add_custom_model(
        self, sub_account_id: Optional[str], custom_model_name: str, custom_model_url: str
    ) -> Any:
        payload = {"custom_model_name": custom_model_name, "custom_model_url": custom_model_url}
        return await self._call("POST", "/user/model/custom", sub_account_id, json=payload)

    # ── Phone numbers ──

    async def list_phone_numbers(
        self, sub_account_id: Optional[str] = None, fallback: bool = True
    ) -> Any:
        try:
            return await self._call("GET", "/phone-numbers/all", sub_account_id)
        except UpstreamApiError as exc:
            if not fallback or exc.status not in (401, 404):
                raise
            logger.warning("/phone-numbers/all returned %s, returning empty list", exc.status)
            return []

    async def search_phone_numbers(
        self, sub_account_id: Optional[str], country: str, pattern: Optional[str] = None
    ) -> Any:
        params = {"country": country}
        if pattern:
            params["pattern"] = pattern
        return await self._call("GET", "/phone-numbers/search", sub_account_id, params=params)

    async def buy_phone_number(
        self, sub_account_id: Optional[str], country: str, phone_number: str
    ) -> Any:
        payload = {"country": country, "phone_number": phone_number}
        return await self._call("POST", "/phone-numbers/buy", sub_account_id, json=payload)

    async def setup_inbound(
        self,
        sub_account_id: Optional[str],
        agent_id: str,
        phone_number_id: str,
        ivr_config: Any = None,
    ) -> Any:
        payload: dict[str, Any] = {"agent_id": agent_id, "phone_number_id": phone_number_id}
        if ivr_config is not None:
            payload["ivr_config"] = ivr_config
        return await self._call("POST", "/inbound/setup", sub_account_id, json=payload)

    async def unlink_inbound(self, sub_account_id: Optional[str], phone_number_id: str) -> Any:
        return await self._call(
            "POST", "/inbound/unlink", sub_account_id, json={"phone_number_id": phone_number_id}
        )

    # ── Knowledgebases ──

    async def list_knowledgebases(self, sub_account_id: Optional[str] = None) -> Any:
        try:
            return await self._call("GET", "/knowledgebase/all", sub_account_id)
        except UpstreamApiError as exc:
            if exc.status != 404:
                raise
            return []

    async def create_knowledgebase(
        self,
        sub_account_id: Optional[str],
        url: Optional[str] = None,
        file_content: Optional[bytes] = None,
        filename: str = "upload.pdf",
        chunk_size: Optional[int] = None,
        similarity_top_k: Optional[int] = None,
        overlapping: Optional[int] = None,
    ) -> Any:
        """Ingest a knowledgebase from a URL (JSON body) or an uploaded file (multipart)."""
        url = (url or "").strip()
        if not url and not file_content:
            raise UpstreamApiError("Must provide either 'file' or 'url' parameter", 400)
        extra = {
            k: v
            for k, v in (
                ("chunk_size", chunk_size),
                ("similarity_top_k", similarity_top_k),
                ("overlapping", overlapping),
            )
            if v
        }
        if url:
            return await self._call(
                "POST", "/knowledgebase", sub_account_id, json={"url": url, **extra}
            )
        data = {k: str(v) for k, v in extra.items()}
        files = {"file": (filename, file_content)}
        return await self._call("POST", "/knowledgebase", sub_account_id, data=data, files=files)

    async def delete_knowledgebase(self, sub_account_id: Optional[str], rag_id: str) -> Any:
        return await self._call("DELETE", f"/knowledgebase/{quote(rag_id, safe='')}", sub_account_id)
