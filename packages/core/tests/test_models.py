"""Domain Models 单元测试

测试内容：
1. 优先级 / 状态正规化（非法值降级为默认）
2. 期限日两种格式解析
3. TaskDraft 校验
4. Plan 无限标记
"""

from datetime import UTC, date, datetime

import pytest
from pydantic import ValidationError
from tasktree.core.models import (
    Plan,
    Task,
    TaskDraft,
    TaskPriority,
    TaskStatus,
    normalize_priority,
    normalize_status,
    parse_due_date,
)


class TestNormalize:
    """枚举正规化"""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("HIGH", TaskPriority.HIGH),
            ("low", TaskPriority.LOW),
            (" Normal ", TaskPriority.NORMAL),
            ("urgent", TaskPriority.NORMAL),
            (None, TaskPriority.NORMAL),
        ],
    )
    def test_priority(self, raw, expected):
        assert normalize_priority(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("doing", TaskStatus.DOING),
            ("DONE", TaskStatus.DONE),
            ("archived", TaskStatus.TODO),
            ("", TaskStatus.TODO),
            (None, TaskStatus.TODO),
        ],
    )
    def test_status(self, raw, expected):
        assert normalize_status(raw) == expected


class TestDueDate:
    """期限日解析"""

    def test_dash_format(self):
        assert parse_due_date("2025-03-09") == date(2025, 3, 9)

    def test_slash_format(self):
        assert parse_due_date("2025/03/09") == date(2025, 3, 9)

    def test_blank_is_none(self):
        assert parse_due_date("  ") is None
        assert parse_due_date(None) is None

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            parse_due_date("09.03.2025")


class TestTaskDraft:
    """TaskDraft 校验"""

    def test_defaults_and_normalization(self):
        draft = TaskDraft(title="  Write report ", priority="bogus", status=None)
        assert draft.title == "Write report"
        assert draft.priority == TaskPriority.NORMAL
        assert draft.status == TaskStatus.TODO
        assert draft.description == ""

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            TaskDraft(title="   ")

    def test_bad_due_date_rejected(self):
        with pytest.raises(ValidationError):
            TaskDraft(title="x", due_date="tomorrow")


class TestTask:
    """Task 模型"""

    def test_is_root(self):
        now = datetime(2025, 6, 15, tzinfo=UTC)
        root = Task(task_id="t1", owner_id="u1", title="Root", created_at=now, updated_at=now)
        child = root.model_copy(update={"task_id": "t2", "parent_id": "t1"})
        assert root.is_root is True
        assert child.is_root is False


class TestPlan:
    """套餐无限标记"""

    def test_explicit_unlimited(self):
        plan = Plan(plan_id=1, name="Max", ai_quota=0, unlimited=True)
        assert plan.is_unlimited is True

    def test_zero_quota_is_limited(self):
        assert Plan(plan_id=1, name="Free", ai_quota=0).is_unlimited is False

    def test_negative_quota_rejected(self):
        with pytest.raises(ValidationError):
            Plan(plan_id=1, name="Bad", ai_quota=-1)
