"""CLI 入口模块 -- python -m tasktree.core <command>

支持的命令：
  init-db     创建数据库与表结构
  seed-plans  写入默认套餐（可重复执行）
"""

import asyncio
import sys

from .config import get_db_path
from .models.quota import Plan

# 默认套餐：Free / Basic / Premium（无限）
DEFAULT_PLANS: list[Plan] = [
    Plan(plan_id=1, name="Free", ai_quota=5),
    Plan(plan_id=2, name="Basic", ai_quota=100),
    Plan(plan_id=3, name="Premium", ai_quota=None, unlimited=True),
]


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m tasktree.core <command>")
        print("命令:")
        print("  init-db     创建数据库与表结构")
        print("  seed-plans  写入默认套餐")
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "seed-plans":
        asyncio.run(seed_plans())
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, seed-plans")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库（表结构由 create_store_group 初始化）"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    store_group = await create_store_group(db_path)
    await store_group.conn.close()
    print("初始化完成")


async def seed_plans(plans: list[Plan] | None = None) -> int:
    """写入默认套餐，返回写入条数"""
    from .store import create_store_group

    plans = plans if plans is not None else DEFAULT_PLANS
    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    store_group = await create_store_group(db_path)

    try:
        async with store_group.transaction():
            for plan in plans:
                await store_group.plan_store.upsert_plan(plan)
        print(f"写入完成，共 {len(plans)} 个套餐")
        return len(plans)
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
