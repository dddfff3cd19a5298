"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from tasktree.core.models import Plan
from tasktree.core.store import StoreGroup, create_store_group


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "core_test.db"


@pytest_asyncio.fixture
async def store_group(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """核心层已初始化的 Store 实例组"""
    sg = await create_store_group(str(core_db_path))
    yield sg
    await sg.conn.close()


@pytest.fixture
def now() -> datetime:
    """固定时间点：2025-06-15 03:00 UTC（东京时间同日 12:00）"""
    return datetime(2025, 6, 15, 3, 0, tzinfo=UTC)


@pytest.fixture
def plans() -> dict[str, Plan]:
    """常用套餐"""
    return {
        "free": Plan(plan_id=1, name="Free", ai_quota=5),
        "pro": Plan(plan_id=2, name="Pro", ai_quota=100),
        "unlimited": Plan(plan_id=3, name="Unlimited", ai_quota=None, unlimited=True),
        "disabled": Plan(plan_id=4, name="NoAI", ai_quota=0),
    }
