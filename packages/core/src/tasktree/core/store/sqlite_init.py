"""SQLite 数据库初始化

PRAGMA 配置 + 五张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL（parent_id 自引用外键，删除必须后序进行）
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id       TEXT PRIMARY KEY,
    owner_id      TEXT NOT NULL,
    parent_id     TEXT,
    title         TEXT NOT NULL,
    description   TEXT NOT NULL DEFAULT '',
    due_date      TEXT,
    priority      TEXT NOT NULL DEFAULT 'NORMAL',
    status        TEXT NOT NULL DEFAULT 'TODO',
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    decomposed_at TEXT,

    FOREIGN KEY (parent_id) REFERENCES tasks(task_id)
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id);",
]

# ai_usage 表 DDL：每个用户每月一行
_AI_USAGE_DDL = """
CREATE TABLE IF NOT EXISTS ai_usage (
    owner_id     TEXT NOT NULL,
    year         INTEGER NOT NULL,
    month        INTEGER NOT NULL,
    used_count   INTEGER NOT NULL DEFAULT 0,
    bonus_count  INTEGER NOT NULL DEFAULT 0,

    PRIMARY KEY (owner_id, year, month)
);
"""

# plans 表 DDL（只读参考数据）
_PLANS_DDL = """
CREATE TABLE IF NOT EXISTS plans (
    plan_id    INTEGER PRIMARY KEY,
    name       TEXT NOT NULL,
    ai_quota   INTEGER,
    unlimited  INTEGER NOT NULL DEFAULT 0
);
"""

# accounts 表 DDL：用户当前套餐
_ACCOUNTS_DDL = """
CREATE TABLE IF NOT EXISTS accounts (
    owner_id    TEXT PRIMARY KEY,
    plan_id     INTEGER NOT NULL,
    updated_at  TEXT NOT NULL,

    FOREIGN KEY (plan_id) REFERENCES plans(plan_id)
);
"""

# quota_adjustments 表 DDL：结转 / 点数包的幂等标记
_QUOTA_ADJUSTMENTS_DDL = """
CREATE TABLE IF NOT EXISTS quota_adjustments (
    adjustment_key  TEXT PRIMARY KEY,
    owner_id        TEXT NOT NULL,
    kind            TEXT NOT NULL,
    amount          INTEGER NOT NULL DEFAULT 0,
    year            INTEGER NOT NULL,
    month           INTEGER NOT NULL,
    created_at      TEXT NOT NULL
);
"""

_QUOTA_ADJUSTMENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_quota_adjustments_owner ON quota_adjustments(owner_id);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_AI_USAGE_DDL)
    await conn.execute(_PLANS_DDL)
    await conn.execute(_ACCOUNTS_DDL)
    await conn.execute(_QUOTA_ADJUSTMENTS_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _QUOTA_ADJUSTMENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
