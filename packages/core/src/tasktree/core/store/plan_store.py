"""PlanStore SQLite 实现 -- 套餐参考数据 + 用户当前套餐"""

from datetime import datetime

import aiosqlite

from ..models.quota import Plan


class SqlitePlanStore:
    """PlanStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_plan(self, plan_id: int) -> Plan | None:
        """按 plan_id 查询套餐"""
        cursor = await self._conn.execute(
            "SELECT plan_id, name, ai_quota, unlimited FROM plans WHERE plan_id = ?",
            (plan_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_plan(row)

    async def list_plans(self) -> list[Plan]:
        """按 plan_id 升序列出全部套餐"""
        cursor = await self._conn.execute(
            "SELECT plan_id, name, ai_quota, unlimited FROM plans ORDER BY plan_id ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_plan(row) for row in rows]

    async def upsert_plan(self, plan: Plan) -> None:
        """写入或覆盖套餐定义（用于初始化种子数据）"""
        await self._conn.execute(
            """
            INSERT INTO plans (plan_id, name, ai_quota, unlimited)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (plan_id) DO UPDATE SET
                name = excluded.name,
                ai_quota = excluded.ai_quota,
                unlimited = excluded.unlimited
            """,
            (plan.plan_id, plan.name, plan.ai_quota, int(plan.is_unlimited)),
        )

    async def get_account_plan_id(self, owner_id: str) -> int | None:
        """查询用户当前套餐 ID"""
        cursor = await self._conn.execute(
            "SELECT plan_id FROM accounts WHERE owner_id = ?",
            (owner_id,),
        )
        row = await cursor.fetchone()
        return None if row is None else int(row[0])

    async def set_account_plan(
        self,
        owner_id: str,
        plan_id: int,
        updated_at: datetime,
    ) -> None:
        """设置用户当前套餐"""
        await self._conn.execute(
            """
            INSERT INTO accounts (owner_id, plan_id, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT (owner_id) DO UPDATE SET
                plan_id = excluded.plan_id,
                updated_at = excluded.updated_at
            """,
            (owner_id, plan_id, updated_at.isoformat()),
        )

    @staticmethod
    def _row_to_plan(row: aiosqlite.Row) -> Plan:
        return Plan(
            plan_id=row[0],
            name=row[1],
            ai_quota=row[2],
            unlimited=bool(row[3]),
        )
