"""Integration tests for tenant management and tenant isolation."""

import httpx


def tenant_payload(slug: str, **overrides):
    payload = {
        "name": slug.title(),
        "slug": slug,
        "admin_name": "Admin",
        "admin_email": f"admin@{slug}.test",
        "admin_password": "secret-pass",
        "sub_account_id": f"sub-{slug}",
    }
    payload.update(overrides)
    return payload


class TestTenantCreate:
    async def test_create(self, client, super_admin_headers):
        resp = await client.post(
            "/api/super-admin/tenants", json=tenant_payload("acme", plan="pro"),
            headers=super_admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["tenant"]["bolna_sub_account_id"] == "sub-acme"
        assert data["tenant"]["plan"] == "pro"
        assert data["admin"]["role"] == "admin"
        assert "password_hash" not in data["admin"]

    async def test_requires_super_admin(self, client):
        resp = await client.post("/api/super-admin/tenants", json=tenant_payload("acme"))
        assert resp.status_code == 401

    async def test_duplicate_slug(self, client, super_admin_headers, make_tenant):
        await make_tenant("acme")
        resp = await client.post(
            "/api/super-admin/tenants",
            json=tenant_payload("acme", admin_email="other@x.test", sub_account_id="sub-2"),
            headers=super_admin_headers,
        )
        assert resp.status_code == 409

    async def test_duplicate_admin_email(self, client, super_admin_headers, make_tenant):
        await make_tenant("acme")
        resp = await client.post(
            "/api/super-admin/tenants",
            json=tenant_payload("beta", admin_email="admin@acme.test"),
            headers=super_admin_headers,
        )
        assert resp.status_code == 409
        listing = await client.get("/api/super-admin/tenants", headers=super_admin_headers)
        assert [t["slug"] for t in listing.json()] == ["acme"]

    async def test_invalid_slug(self, client, super_admin_headers):
        resp = await client.post(
            "/api/super-admin/tenants", json=tenant_payload("Not A Slug"),
            headers=super_admin_headers,
        )
        assert resp.status_code == 422

    async def test_no_api_key_configured(self, client, super_admin_headers):
        resp = await client.post(
            "/api/super-admin/tenants",
            json=tenant_payload("acme", sub_account_id=None),
            headers=super_admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Failed to create tenant: Bolna API Key not configured"

    async def test_sub_account_provisioned(self, client, super_admin_headers, mock_platform):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json={"sub_account_id": "remote-42"})

        mock_platform(handler)
        resp = await client.post(
            "/api/super-admin/tenants",
            json=tenant_payload("acme", sub_account_id=None),
            headers=super_admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["tenant"]["bolna_sub_account_id"] == "remote-42"
        assert seen == ["/sub-accounts/create"]

    async def test_sub_account_refused_uses_placeholder(self, client, super_admin_headers, mock_platform):
        mock_platform(lambda r: httpx.Response(403, json={"message": "Sub-accounts not available"}))
        resp = await client.post(
            "/api/super-admin/tenants",
            json=tenant_payload("acme", sub_account_id=None),
            headers=super_admin_headers,
        )
        assert resp.status_code == 201
        tenant = resp.json()["tenant"]
        assert tenant["bolna_sub_account_id"].startswith("internal-acme-")
        assert tenant["settings"]["pending_subaccount"] is True


class TestTenantAdmin:
    async def test_detail_with_usage(self, client, super_admin_headers, make_tenant):
        created = await make_tenant("acme", plan="pro")
        resp = await client.get(
            f"/api/super-admin/tenants/{created['tenant']['id']}", headers=super_admin_headers
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["usage"]["users"] == {"current": 1, "limit": 10}
        assert data["plan_limits"]["max_agents"] == 20

    async def test_unknown_tenant(self, client, super_admin_headers):
        resp = await client.get("/api/super-admin/tenants/999", headers=super_admin_headers)
        assert resp.status_code == 404

    async def test_update_plan(self, client, super_admin_headers, make_tenant):
        created = await make_tenant("acme")
        resp = await client.patch(
            f"/api/super-admin/tenants/{created['tenant']['id']}",
            json={"plan": "enterprise"},
            headers=super_admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["plan"] == "enterprise"

    async def test_super_admin_creates_user_beyond_plan(self, client, super_admin_headers, make_tenant):
        created = await make_tenant("acme")
        tenant_id = created["tenant"]["id"]
        for i in range(3):
            resp = await client.post(
                "/api/super-admin/users",
                json={"tenant_id": tenant_id, "name": f"U{i}", "email": f"u{i}@acme.test",
                      "password": "secret-pass"},
                headers=super_admin_headers,
            )
            assert resp.status_code == 201
        users = await client.get(
            f"/api/super-admin/tenants/{tenant_id}/users", headers=super_admin_headers
        )
        assert len(users.json()) == 4


class TestTenantScopedUsers:
    async def test_plan_limit(self, client, make_tenant, login):
        await make_tenant("acme")  # starter: 3 users
        headers = await login("admin@acme.test")
        for i in range(2):
            resp = await client.post(
                "/api/tenant/users",
                json={"name": f"U{i}", "email": f"u{i}@acme.test", "password": "secret-pass"},
                headers=headers,
            )
            assert resp.status_code == 201
        resp = await client.post(
            "/api/tenant/users",
            json={"name": "U3", "email": "u3@acme.test", "password": "secret-pass"},
            headers=headers,
        )
        assert resp.status_code == 403
        assert "Plan limit reached" in resp.json()["detail"]

    async def test_agent_cannot_manage_users(self, client, make_tenant, login):
        await make_tenant("acme")
        admin = await login("admin@acme.test")
        await client.post(
            "/api/tenant/users",
            json={"name": "Agent", "email": "agent@acme.test", "password": "secret-pass"},
            headers=admin,
        )
        agent = await login("agent@acme.test")
        resp = await client.get("/api/tenant/users", headers=agent)
        assert resp.status_code == 403

    async def test_isolation(self, client, make_tenant, login):
        await make_tenant("acme")
        beta = await make_tenant("beta")
        acme_headers = await login("admin@acme.test")

        users = await client.get("/api/tenant/users", headers=acme_headers)
        assert {u["email"] for u in users.json()} == {"admin@acme.test"}

        resp = await client.patch(
            f"/api/tenant/users/{beta['admin']['id']}",
            json={"role": "agent"},
            headers=acme_headers,
        )
        assert resp.status_code == 404

    async def test_limits(self, client, make_tenant, login):
        await make_tenant("acme")
        headers = await login("admin@acme.test")
        resp = await client.get("/api/tenant/limits", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["plan"] == "starter"
        assert data["limits"]["features"] == ["basic_analytics", "email_support"]
        assert data["usage"]["users"] == {"current": 1, "limit": 3}
        assert "executions" not in data["usage"]
