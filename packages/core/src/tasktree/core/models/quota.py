"""配额 Domain Model -- Plan / UsageRecord / QuotaStatus

remaining 与 effective quota 中的 None 统一表示"无限"。
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from .enums import AdjustmentKind


class Plan(BaseModel):
    """订阅套餐（只读参考数据）

    无限套餐必须显式声明：unlimited=True 或 ai_quota 为 None。
    ai_quota == 0 表示该套餐不提供分解额度（bonus 仍可使用）。
    """

    plan_id: int = Field(description="套餐 ID")
    name: str = Field(description="展示名称")
    ai_quota: int | None = Field(default=0, ge=0, description="每月分解次数，None 为无限")
    unlimited: bool = Field(default=False, description="显式无限标记")

    @model_validator(mode="after")
    def _sync_unlimited(self) -> "Plan":
        if self.ai_quota is None:
            self.unlimited = True
        return self

    @property
    def is_unlimited(self) -> bool:
        return self.unlimited or self.ai_quota is None


class UsageRecord(BaseModel):
    """月度用量记录 -- (owner_id, year, month) 一行"""

    owner_id: str
    year: int = Field(ge=1970)
    month: int = Field(ge=1, le=12)
    used_count: int = Field(default=0, ge=0, description="当月成功分解次数")
    bonus_count: int = Field(default=0, ge=0, description="当月累计 bonus 额度")


class QuotaAdjustment(BaseModel):
    """配额调整幂等标记"""

    adjustment_key: str = Field(description="幂等键（降级事件 / 支付引用）")
    owner_id: str
    kind: AdjustmentKind
    amount: int = Field(ge=0)
    year: int
    month: int
    created_at: datetime


class QuotaStatus(BaseModel):
    """当前用户配额视图"""

    plan_id: int | None = None
    plan_name: str = ""
    plan_source: str | None = Field(default=None, description="token / db / fallback")
    unlimited: bool = False
    used: int = 0
    bonus: int = 0
    remaining: int | None = Field(default=0, description="None 表示无限")
    ai_configured: bool = True
    reset_date: date
    days_until_reset: int = Field(ge=0)


class ResolvedPlan(BaseModel):
    """套餐解析结果 -- plan 为 None 时按额度 0 处理"""

    plan: Plan | None = None
    source: str = Field(description="token / db / fallback / none")
