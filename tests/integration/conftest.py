"""集成测试共享 fixture -- echo 传输 + 默认套餐 + 完整 app"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tasktree.core.__main__ import DEFAULT_PLANS
from tasktree.core.store import create_store_group
from tasktree.provider import ProviderConfig, ResilientGenerationClient


@pytest_asyncio.fixture
async def integration_db_path(tmp_path: Path) -> Path:
    return tmp_path / "integration.db"


@pytest_asyncio.fixture
async def integration_app(integration_db_path: Path):
    """集成测试用 FastAPI app（echo 模式，已写入默认套餐）"""
    os.environ["TASKTREE_DB_PATH"] = str(integration_db_path)
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from tasktree.gateway.main import create_app
    from tasktree.gateway.services.decomposition_service import DecompositionService

    app = create_app()

    store_group = await create_store_group(str(integration_db_path))
    async with store_group.transaction():
        for plan in DEFAULT_PLANS:
            await store_group.plan_store.upsert_plan(plan)
    generator = ResilientGenerationClient.from_config(ProviderConfig(llm_mode="echo"))
    app.state.store_group = store_group
    app.state.decomposition_service = DecompositionService(store_group, generator)

    yield app

    await store_group.conn.close()
    os.environ.pop("TASKTREE_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
