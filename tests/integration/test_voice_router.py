"""Integration tests for the voice-platform proxy endpoints."""

import httpx

AGENT_BODY = {
    "agent_config": {"agent_name": "Sales", "tasks": [{"task_type": "conversation"}]},
    "agent_prompts": {"task_1": {"system_prompt": "Be brief"}},
}


class Upstream:
    """Voice platform double keyed by (method, path)."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"message": "Not found"})
        return answer(request) if callable(answer) else httpx.Response(200, json=answer)


class TestProxy:
    async def test_scoped_to_tenant_sub_account(self, client, make_tenant, login, mock_platform):
        upstream = Upstream({("GET", "/v2/agent/all"): [{"id": "a1"}]})
        mock_platform(upstream)
        await make_tenant("acme")
        headers = await login("admin@acme.test")

        resp = await client.get("/api/bolna/agents", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == [{"id": "a1"}]
        sent = upstream.requests[0]
        assert sent.headers["X-Sub-Account-Id"] == "sub-acme"
        assert sent.headers["Authorization"] == "Bearer test-master-key"

    async def test_upstream_error_passthrough(self, client, make_tenant, login, mock_platform):
        mock_platform(Upstream({
            ("GET", "/v2/agent/x"): lambda r: httpx.Response(422, json={"message": "bad id"}),
        }))
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.get("/api/bolna/agents/x", headers=headers)
        assert resp.status_code == 422
        assert resp.json()["detail"] == "bad id"

    async def test_unreachable_platform_is_bad_gateway(self, client, make_tenant, login, mock_platform):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        mock_platform(refuse)
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.get("/api/bolna/voices", headers=headers)
        assert resp.status_code == 502
        assert "connection refused" in resp.json()["detail"]

    async def test_no_key_configured(self, client, make_tenant, login):
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.get("/api/bolna/agents", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Bolna API Key not configured"

    async def test_requires_login(self, client):
        resp = await client.get("/api/bolna/agents")
        assert resp.status_code == 401


class TestAgents:
    async def test_create_agent_stores_local_copy(self, client, make_tenant, login, mock_platform):
        mock_platform(Upstream({("POST", "/v2/agent"): {"agent_id": "remote-1", "state": "created"}}))
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.post("/api/bolna/agents", json=AGENT_BODY, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["bolna_agent_id"] == "remote-1"
        assert resp.json()["agent_name"] == "Sales"

    async def test_create_agent_validation(self, client, make_tenant, login, mock_platform):
        upstream = Upstream()
        mock_platform(upstream)
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        body = {"agent_config": {"agent_name": "Sales", "tasks": []}, "agent_prompts": {"a": 1}}
        resp = await client.post("/api/bolna/agents", json=body, headers=headers)
        assert resp.status_code == 400
        assert upstream.requests == []

    async def test_agent_plan_limit(self, client, make_tenant, login, mock_platform):
        counter = iter(range(100))
        mock_platform(Upstream({
            ("POST", "/v2/agent"): lambda r: httpx.Response(200, json={"agent_id": f"r-{next(counter)}"}),
        }))
        await make_tenant("acme")  # starter: 5 agents
        headers = await login("admin@acme.test")
        for _ in range(5):
            assert (await client.post("/api/bolna/agents", json=AGENT_BODY, headers=headers)).status_code == 201
        resp = await client.post("/api/bolna/agents", json=AGENT_BODY, headers=headers)
        assert resp.status_code == 403


class TestCalls:
    async def test_make_call_requires_fields(self, client, make_tenant, login, mock_platform):
        upstream = Upstream()
        mock_platform(upstream)
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.post("/api/bolna/calls", json={"agent_id": "a1"}, headers=headers)
        assert resp.status_code == 400
        assert upstream.requests == []

    async def test_make_call(self, client, make_tenant, login, mock_platform):
        mock_platform(Upstream({("POST", "/call"): {"execution_id": "e1", "status": "queued"}}))
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.post(
            "/api/bolna/calls",
            json={"agent_id": "a1", "recipient_phone_number": "+15550001"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["execution_id"] == "e1"

    async def test_all_executions_needs_agent(self, client, make_tenant, login):
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.get("/api/bolna/executions", headers=headers)
        assert resp.json()["data"] == []
        assert "select a specific agent" in resp.json()["message"]

    async def test_export_follows_pagination(self, client, make_tenant, login, mock_platform):
        def executions(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page_number"])
            return httpx.Response(200, json={
                "data": [{
                    "id": f"e{page}", "status": "completed", "conversation_time": 30,
                    "total_cost": 0, "created_at": "2025-01-01",
                    "telephony_data": {"to_number": "+1", "from_number": "+2",
                                       "provider": "twilio", "direction": "outbound"},
                }],
                "has_more": page < 2,
            })

        mock_platform(Upstream({("GET", "/v2/agent/a1/executions"): executions}))
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.get("/api/bolna/agents/a1/export", headers=headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.strip().split("\n")
        assert lines[0].startswith('"execution_id","to_number"')
        assert len(lines) == 3
        assert lines[1].startswith('"e1","+1","+2","twilio","outbound","30","completed","0"')


class TestApiKeys:
    async def test_presence_and_save(self, client, super_admin_headers):
        resp = await client.get("/api/keys/BOLNA_API_KEY")
        assert resp.json() == {"value": False}

        saved = await client.post(
            "/api/keys", json={"key": "BOLNA_API_KEY", "value": "sk-live"},
            headers=super_admin_headers,
        )
        assert saved.status_code == 200
        assert saved.json()["key"] == "BOLNA_API_KEY"
        assert "value" not in saved.json()

        resp = await client.get("/api/keys/BOLNA_API_KEY")
        assert resp.json() == {"value": True}

    async def test_tenant_user_cannot_save(self, client, make_tenant, login):
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.post(
            "/api/keys", json={"key": "BOLNA_API_KEY", "value": "x"}, headers=headers
        )
        assert resp.status_code == 403

    async def test_saved_key_is_used(self, client, super_admin_headers):
        await client.post(
            "/api/keys", json={"key": "BOLNA_API_KEY", "value": "sk-stored"},
            headers=super_admin_headers,
        )
        from thinkvoice_console.deps import get_voice_client
        voice = await get_voice_client()
        assert voice.api_key == "sk-stored"

    async def test_listing_is_masked(self, client, super_admin_headers):
        await client.post(
            "/api/keys", json={"key": "BOLNA_API_KEY", "value": "sk-live-123456"},
            headers=super_admin_headers,
        )
        resp = await client.get("/api/keys", headers=super_admin_headers)
        assert resp.status_code == 200
        assert resp.json()[0]["masked_value"] == "sk-l...3456"
