"""UsageStore SQLite 实现 -- 月度用量 + 配额调整幂等标记

ai_usage 行按 (owner_id, year, month) 懒创建（upsert），从不删除；
used_count / bonus_count 只增不减。方法不提交事务。
"""

from datetime import datetime

import aiosqlite

from ..models.quota import QuotaAdjustment, UsageRecord


class SqliteUsageStore:
    """UsageStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_usage(self, owner_id: str, year: int, month: int) -> UsageRecord | None:
        """查询指定月份的用量记录"""
        cursor = await self._conn.execute(
            """
            SELECT owner_id, year, month, used_count, bonus_count
            FROM ai_usage WHERE owner_id = ? AND year = ? AND month = ?
            """,
            (owner_id, year, month),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return UsageRecord(
            owner_id=row[0],
            year=row[1],
            month=row[2],
            used_count=row[3],
            bonus_count=row[4],
        )

    async def upsert_increment_used(
        self,
        owner_id: str,
        year: int,
        month: int,
        delta: int = 1,
    ) -> None:
        """used_count += delta（无记录时以 delta 创建）"""
        await self._conn.execute(
            """
            INSERT INTO ai_usage (owner_id, year, month, used_count, bonus_count)
            VALUES (?, ?, ?, ?, 0)
            ON CONFLICT (owner_id, year, month)
            DO UPDATE SET used_count = used_count + excluded.used_count
            """,
            (owner_id, year, month, delta),
        )

    async def upsert_add_bonus(
        self,
        owner_id: str,
        year: int,
        month: int,
        amount: int,
    ) -> None:
        """bonus_count += amount（amount 为 0 时仅确保记录存在）"""
        await self._conn.execute(
            """
            INSERT INTO ai_usage (owner_id, year, month, used_count, bonus_count)
            VALUES (?, ?, ?, 0, ?)
            ON CONFLICT (owner_id, year, month)
            DO UPDATE SET bonus_count = bonus_count + excluded.bonus_count
            """,
            (owner_id, year, month, amount),
        )

    async def get_adjustment(self, adjustment_key: str) -> QuotaAdjustment | None:
        """按幂等键查询配额调整标记"""
        cursor = await self._conn.execute(
            """
            SELECT adjustment_key, owner_id, kind, amount, year, month, created_at
            FROM quota_adjustments WHERE adjustment_key = ?
            """,
            (adjustment_key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return QuotaAdjustment(
            adjustment_key=row[0],
            owner_id=row[1],
            kind=row[2],
            amount=row[3],
            year=row[4],
            month=row[5],
            created_at=datetime.fromisoformat(row[6]),
        )

    async def insert_adjustment(self, adjustment: QuotaAdjustment) -> bool:
        """写入幂等标记

        Returns:
            True 表示新写入；False 表示幂等键已存在（未做任何修改）
        """
        cursor = await self._conn.execute(
            """
            INSERT OR IGNORE INTO quota_adjustments
                (adjustment_key, owner_id, kind, amount, year, month, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                adjustment.adjustment_key,
                adjustment.owner_id,
                adjustment.kind.value,
                adjustment.amount,
                adjustment.year,
                adjustment.month,
                adjustment.created_at.isoformat(),
            ),
        )
        return cursor.rowcount == 1
