"""健康检查测试

测试内容：
1. GET /health 返回 200 + ok
2. GET /ready 正常时返回 200 + checks 结构（含 WAL 模式）
3. GET /ready 熔断打开不影响就绪
4. GET /ready?profile=llm 探测上游
5. GET /ready SQLite 不可用时返回 503
"""

from httpx import ASGITransport, AsyncClient


class TestHealthCheck:
    """健康检查"""

    async def test_health_returns_200(self, client: AsyncClient):
        """GET /health 永远返回 200"""
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_ready_returns_200(self, client: AsyncClient):
        """GET /ready 正常时返回 200 + checks 结构"""
        resp = await client.get("/ready")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["profile"] == "core"
        checks = data["checks"]
        assert checks["sqlite"] == "ok"
        assert checks["wal_mode"] == "ok"
        assert isinstance(checks["disk_space_mb"], int)
        assert checks["generator"] == "configured"
        assert checks["circuit_breaker"] == "closed"
        assert checks["llm_upstream"] == "skipped"

    async def test_open_breaker_is_reported(self, client: AsyncClient, breaker):
        breaker.record_failure()
        breaker.record_failure()

        resp = await client.get("/ready")

        assert resp.status_code == 200
        assert resp.json()["checks"]["circuit_breaker"] == "open"

    async def test_llm_profile_checks_upstream(self, client: AsyncClient):
        resp = await client.get("/ready", params={"profile": "llm"})
        assert resp.status_code == 200
        assert resp.json()["checks"]["llm_upstream"] == "ok"

    async def test_unconfigured_generator_skips_upstream_check(
        self, client: AsyncClient, transport
    ):
        transport.configured = False
        resp = await client.get("/ready", params={"profile": "llm"})
        assert resp.status_code == 200
        checks = resp.json()["checks"]
        assert checks["generator"] == "not_configured"
        assert checks["llm_upstream"] == "skipped"

    async def test_ready_sqlite_failure(self, app):
        """GET /ready SQLite 不可用时返回 503"""
        await app.state.store_group.conn.close()

        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            resp = await ac.get("/ready")
            assert resp.status_code == 503
            data = resp.json()
            assert data["status"] == "not_ready"
            assert data["checks"]["sqlite"] == "unavailable"

    async def test_ready_reports_disabled_wal(self, client: AsyncClient, store_group):
        await store_group.conn.execute("PRAGMA journal_mode = DELETE;")

        resp = await client.get("/ready")

        assert resp.status_code == 200
        assert resp.json()["checks"]["wal_mode"] == "disabled"
