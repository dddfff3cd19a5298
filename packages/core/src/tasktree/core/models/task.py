"""Task Domain Model -- 每个用户一片任务森林

parent_id 在创建时确定，普通字段更新永不修改；
只有分解编排器的"替换后代"操作会在既有任务下新建子节点。
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from .enums import TaskPriority, TaskStatus, normalize_priority, normalize_status

_DUE_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d")


def parse_due_date(value: str | date | None) -> date | None:
    """解析期限日，接受 yyyy-MM-dd 与 yyyy/MM/dd 两种格式

    Args:
        value: 日期字符串或 date；空白视为未设置

    Returns:
        date 或 None

    Raises:
        ValueError: 格式不合法
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for fmt in _DUE_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid due date: {value!r} (expected yyyy-MM-dd or yyyy/MM/dd)")


class TaskDraft(BaseModel):
    """任务创建/更新输入 -- 已正规化的字段集合

    不包含 parent_id：父子关系只在 TaskHierarchy 中确定。
    """

    title: str = Field(min_length=1, description="任务标题")
    description: str = Field(default="", description="任务说明")
    due_date: date | None = Field(default=None, description="期限日")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="优先级")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="状态")

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value):
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, value):
        return "" if value is None else str(value).strip()

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value):
        return parse_due_date(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value):
        return normalize_priority(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        return normalize_status(value)


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    owner_id: str = Field(description="所属用户")
    parent_id: str | None = Field(default=None, description="父任务 ID，None 表示根")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务说明")
    due_date: date | None = Field(default=None, description="期限日")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL, description="优先级")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    decomposed_at: datetime | None = Field(
        default=None,
        description="子任务最近一次（重新）生成的时间",
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class TaskNode(Task):
    """展示用树节点 -- Task 全字段 + 递归 children"""

    depth: int = Field(default=1, ge=1, description="从根计数的深度（根为 1）")
    children: list["TaskNode"] = Field(default_factory=list, description="子节点")
