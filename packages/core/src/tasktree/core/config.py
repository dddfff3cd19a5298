"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、任务树深度上限、配额账本时区、降级结转基准等可配置常量。
"""

import os
from pathlib import Path
from zoneinfo import ZoneInfo


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKTREE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKTREE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "tasktree.db"),
    )


def get_quota_timezone() -> ZoneInfo:
    """获取配额月度分桶使用的时区（默认 Asia/Tokyo）"""
    return ZoneInfo(os.environ.get("TASKTREE_QUOTA_TZ", "Asia/Tokyo"))


# 任务树最大深度（根节点深度为 1）
MAX_TASK_DEPTH: int = 4

# depth_of 向上遍历的迭代上限（防御损坏/成环数据）
DEPTH_WALK_CAP: int = int(os.environ.get("TASKTREE_DEPTH_WALK_CAP", "64"))

# 无限套餐降级时结转的固定 bonus 基准
UNLIMITED_ROLLOVER_BASELINE: int = int(
    os.environ.get("TASKTREE_UNLIMITED_ROLLOVER_BASELINE", "450")
)

# 自动生成子任务的标题截断长度
TASK_TITLE_MAX_LENGTH: int = 200
