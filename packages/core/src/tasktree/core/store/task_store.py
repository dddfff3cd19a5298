"""TaskStore SQLite 实现

所有查询按 owner_id 限定范围；方法不提交事务，
事务边界由调用方（store/transaction.py 或服务层）负责。
"""

from datetime import date, datetime

import aiosqlite

from ..models.task import Task

_COLUMNS = (
    "task_id, owner_id, parent_id, title, description, due_date, "
    "priority, status, created_at, updated_at, decomposed_at"
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_task(self, task: Task) -> None:
        """插入任务记录"""
        await self._conn.execute(
            f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                task.task_id,
                task.owner_id,
                task.parent_id,
                task.title,
                task.description,
                task.due_date.isoformat() if task.due_date else None,
                task.priority.value,
                task.status.value,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
                task.decomposed_at.isoformat() if task.decomposed_at else None,
            ),
        )

    async def get_task(self, owner_id: str, task_id: str) -> Task | None:
        """按 (owner_id, task_id) 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ? AND owner_id = ?",
            (task_id, owner_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks_for_owner(self, owner_id: str) -> list[Task]:
        """一次性加载用户全部任务，按 created_at、插入顺序升序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE owner_id = ? "
            "ORDER BY created_at ASC, rowid ASC",
            (owner_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def count_children(self, owner_id: str, parent_id: str) -> int:
        """统计直接子任务数"""
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM tasks WHERE owner_id = ? AND parent_id = ?",
            (owner_id, parent_id),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def update_task_fields(self, task: Task) -> None:
        """全字段更新（parent_id 不在更新列中）"""
        await self._conn.execute(
            """
            UPDATE tasks
            SET title = ?, description = ?, due_date = ?, priority = ?,
                status = ?, updated_at = ?
            WHERE task_id = ? AND owner_id = ?
            """,
            (
                task.title,
                task.description,
                task.due_date.isoformat() if task.due_date else None,
                task.priority.value,
                task.status.value,
                task.updated_at.isoformat(),
                task.task_id,
                task.owner_id,
            ),
        )

    async def set_decomposed_at(
        self,
        owner_id: str,
        task_id: str,
        decomposed_at: datetime,
    ) -> None:
        """标记子任务最近一次生成时间"""
        ts = decomposed_at.isoformat()
        await self._conn.execute(
            """
            UPDATE tasks SET decomposed_at = ?, updated_at = ?
            WHERE task_id = ? AND owner_id = ?
            """,
            (ts, ts, task_id, owner_id),
        )

    async def delete_task(self, owner_id: str, task_id: str) -> int:
        """删除单个任务，返回删除行数（调用方保证其子任务已先删除）"""
        cursor = await self._conn.execute(
            "DELETE FROM tasks WHERE task_id = ? AND owner_id = ?",
            (task_id, owner_id),
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            owner_id=row[1],
            parent_id=row[2],
            title=row[3],
            description=row[4],
            due_date=date.fromisoformat(row[5]) if row[5] else None,
            priority=row[6],
            status=row[7],
            created_at=datetime.fromisoformat(row[8]),
            updated_at=datetime.fromisoformat(row[9]),
            decomposed_at=datetime.fromisoformat(row[10]) if row[10] else None,
        )
