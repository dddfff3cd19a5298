"""CLI 命令测试 -- init-db / seed-plans"""

from tasktree.core.__main__ import DEFAULT_PLANS, init_database, seed_plans
from tasktree.core.store import create_store_group


class TestCli:
    async def test_init_db_creates_file(self, tmp_path, monkeypatch):
        db_path = tmp_path / "nested" / "cli.db"
        monkeypatch.setenv("TASKTREE_DB_PATH", str(db_path))

        await init_database()

        assert db_path.exists()

    async def test_seed_plans_is_repeatable(self, tmp_path, monkeypatch):
        db_path = tmp_path / "cli.db"
        monkeypatch.setenv("TASKTREE_DB_PATH", str(db_path))

        assert await seed_plans() == len(DEFAULT_PLANS)
        assert await seed_plans() == len(DEFAULT_PLANS)

        store_group = await create_store_group(str(db_path))
        try:
            plans = await store_group.plan_store.list_plans()
        finally:
            await store_group.conn.close()
        assert [p.name for p in plans] == ["Free", "Basic", "Premium"]
        assert plans[2].is_unlimited is True
        assert plans[0].ai_quota == 5
