"""apps/gateway 测试配置 -- 分解服务 + FastAPI app + httpx AsyncClient

app fixture 绕过 lifespan，手动把 StoreGroup 与 DecompositionService 挂到 app.state，
生成端使用按脚本返回的传输替身，退避等待为空操作。
"""

import json
import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tasktree.core.models import Plan
from tasktree.core.store import StoreGroup, create_store_group
from tasktree.provider import CircuitBreaker, ModelCallResult, ResilientGenerationClient
from tasktree.provider.exceptions import UpstreamTransientError

FIXED_NOW = datetime(2025, 6, 15, 3, 0, tzinfo=UTC)

PLANS = [
    Plan(plan_id=1, name="Free", ai_quota=5),
    Plan(plan_id=2, name="Pro", ai_quota=100),
    Plan(plan_id=3, name="Unlimited", ai_quota=None, unlimited=True),
    Plan(plan_id=4, name="NoAI", ai_quota=0),
]


class ScriptedTransport:
    """按脚本依次返回内容或抛出异常的传输替身（脚本列表按引用共享）"""

    api_base = "http://fake"

    def __init__(self, script: list, configured: bool = True) -> None:
        self.script = script
        self.configured = configured
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages, timeout_s=None, **kwargs) -> ModelCallResult:
        self.calls.append(messages)
        if not self.script:
            raise UpstreamTransientError("http://fake", RuntimeError("script exhausted"))
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return ModelCallResult(content=step, duration_ms=1)

    async def health_check(self) -> bool:
        return self.configured


async def _no_sleep(seconds: float) -> None:
    return None


def children_json(*titles: str) -> str:
    return json.dumps(
        {"children": [{"title": t, "description": f"{t} details"} for t in titles]}
    )


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_children():
    """children_json 构造器"""
    return children_json


@pytest.fixture
def make_transient():
    return lambda: UpstreamTransientError(
        "http://fake", RuntimeError("503"), status_code=503
    )


@pytest.fixture
def script() -> list:
    """生成端脚本：测试向其中追加响应文本或异常"""
    return []


@pytest.fixture
def transport(script: list) -> ScriptedTransport:
    return ScriptedTransport(script)


@pytest.fixture
def breaker() -> CircuitBreaker:
    return CircuitBreaker(failure_threshold=2, open_duration_s=30.0)


@pytest.fixture
def generator(transport, breaker) -> ResilientGenerationClient:
    return ResilientGenerationClient(
        transport,
        breaker,
        max_retries=2,
        max_children=12,
        sleep=_no_sleep,
    )


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已写入测试套餐的 Store 实例组"""
    sg = await create_store_group(str(tmp_path / "gateway_test.db"))
    async with sg.transaction():
        for plan in PLANS:
            await sg.plan_store.upsert_plan(plan)
    yield sg
    await sg.conn.close()


@pytest.fixture
def service(store_group, generator):
    from tasktree.gateway.services.decomposition_service import DecompositionService

    return DecompositionService(store_group, generator, clock=lambda: FIXED_NOW)


@pytest_asyncio.fixture
async def app(tmp_path: Path, store_group, service):
    """创建测试用 FastAPI app 实例（手动初始化 app.state）"""
    os.environ["TASKTREE_DB_PATH"] = str(tmp_path / "gateway_test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from tasktree.gateway.main import create_app

    application = create_app()
    application.state.store_group = store_group
    application.state.decomposition_service = service
    yield application

    for key in ["TASKTREE_DB_PATH", "LOGFIRE_SEND_TO_LOGFIRE"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
