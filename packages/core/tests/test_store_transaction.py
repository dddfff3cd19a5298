"""事务一致性单元测试

测试内容：
1. 事务体正常结束时提交
2. 事务体抛出异常时回滚全部写入（任务与用量）
3. Store 方法本身不提交
"""

from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
from tasktree.core.models import Task
from tasktree.core.store import create_store_group
from tasktree.core.store.transaction import transaction


def _task(task_id: str, parent_id: str | None = None) -> Task:
    now = datetime.now(UTC)
    return Task(
        task_id=task_id,
        owner_id="owner",
        parent_id=parent_id,
        title=f"task {task_id}",
        created_at=now,
        updated_at=now,
    )


async def _count(path: Path, table: str) -> int:
    """用独立连接读取，只能看到已提交的数据"""
    async with aiosqlite.connect(str(path)) as conn:
        cursor = await conn.execute(f"SELECT COUNT(*) FROM {table}")
        row = await cursor.fetchone()
        return row[0]


class TestTransactionAtomicity:
    """事务一致性测试"""

    async def test_commit_on_success(self, store_group, core_db_path):
        async with store_group.transaction():
            await store_group.task_store.insert_task(_task("T1"))
            await store_group.usage_store.upsert_increment_used("owner", 2025, 6)

        assert await _count(core_db_path, "tasks") == 1
        assert await _count(core_db_path, "ai_usage") == 1

    async def test_rollback_on_error(self, store_group, core_db_path):
        with pytest.raises(RuntimeError, match="boom"):
            async with store_group.transaction():
                await store_group.task_store.insert_task(_task("T1"))
                await store_group.task_store.insert_task(_task("T2", parent_id="T1"))
                await store_group.usage_store.upsert_increment_used("owner", 2025, 6)
                raise RuntimeError("boom")

        assert await store_group.task_store.list_tasks_for_owner("owner") == []
        assert await store_group.usage_store.get_usage("owner", 2025, 6) is None

    async def test_foreign_key_violation_rolls_back(self, store_group):
        with pytest.raises(aiosqlite.IntegrityError):
            async with store_group.transaction():
                await store_group.task_store.insert_task(_task("T1"))
                await store_group.task_store.insert_task(_task("T2", parent_id="ghost"))

        assert await store_group.task_store.get_task("owner", "T1") is None

    async def test_store_methods_do_not_commit(self, store_group, core_db_path):
        await store_group.task_store.insert_task(_task("T1"))
        assert await _count(core_db_path, "tasks") == 0
        await store_group.conn.rollback()

    async def test_plain_transaction_without_lock(self, core_db_path):
        sg = await create_store_group(str(core_db_path))
        try:
            async with transaction(sg.conn):
                await sg.task_store.insert_task(_task("T9"))
            assert await _count(core_db_path, "tasks") == 1
        finally:
            await sg.conn.close()
