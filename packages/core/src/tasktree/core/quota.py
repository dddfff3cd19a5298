"""Quota Ledger -- 月度 AI 分解额度的计算与记账

额度 = 套餐 ai_quota + 当月 bonus；无限套餐的额度与剩余量用 None 表示。
used 与 bonus 只增不减：bonus 通过剩余量公式被"隐式消费"，从不扣减。
月度分桶按账本时区（默认 Asia/Tokyo）计算。

所有写操作不提交事务，由调用方负责。
"""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import structlog

from .config import UNLIMITED_ROLLOVER_BASELINE, get_quota_timezone
from .exceptions import QuotaExceededError, ServiceUnavailableError
from .models.enums import AdjustmentKind
from .models.quota import Plan, QuotaAdjustment, QuotaStatus, ResolvedPlan
from .store.protocols import PlanStore, UsageStore

log = structlog.get_logger()


class QuotaLedger:
    """AI 分解额度账本"""

    def __init__(
        self,
        usage_store: UsageStore,
        tz: ZoneInfo | None = None,
        unlimited_rollover_baseline: int = UNLIMITED_ROLLOVER_BASELINE,
    ) -> None:
        self._usage_store = usage_store
        self._tz = tz or get_quota_timezone()
        self._unlimited_baseline = unlimited_rollover_baseline

    # ============================================================
    # 计算
    # ============================================================

    def month_bucket(self, now: datetime) -> tuple[int, int]:
        """now 在账本时区下所属的 (year, month)"""
        local = self._to_local(now)
        return local.year, local.month

    @staticmethod
    def effective_quota(plan: Plan | None, bonus: int) -> int | None:
        """有效额度；None 表示无限。未知套餐按额度 0 处理"""
        if plan is not None and plan.is_unlimited:
            return None
        base = plan.ai_quota if plan is not None and plan.ai_quota is not None else 0
        return max(0, base) + max(0, bonus)

    async def remaining(
        self,
        owner_id: str,
        plan: Plan | None,
        now: datetime,
    ) -> int | None:
        """当月剩余次数，max(0, 有效额度 - used)；None 表示无限"""
        used, bonus = await self._usage(owner_id, now)
        quota = self.effective_quota(plan, bonus)
        if quota is None:
            return None
        return max(0, quota - used)

    async def check_and_reserve(
        self,
        owner_id: str,
        plan: Plan | None,
        now: datetime,
        ai_configured: bool = True,
    ) -> int | None:
        """分解前的额度闸门（乐观预留，不修改任何状态）

        Returns:
            剩余次数（None 表示无限）

        Raises:
            ServiceUnavailableError: 生成服务未配置（先于额度检查）
            QuotaExceededError: 非无限且剩余为 0
        """
        if not ai_configured:
            raise ServiceUnavailableError()
        left = await self.remaining(owner_id, plan, now)
        if left is not None and left <= 0:
            log.info("quota_exceeded", owner_id=owner_id, plan_id=plan and plan.plan_id)
            raise QuotaExceededError(owner_id, remaining=0)
        return left

    # ============================================================
    # 记账（不提交）
    # ============================================================

    async def record_usage(self, owner_id: str, now: datetime) -> None:
        """当月 used_count += 1"""
        year, month = self.month_bucket(now)
        await self._usage_store.upsert_increment_used(owner_id, year, month, 1)

    async def add_bonus(self, owner_id: str, now: datetime, amount: int) -> None:
        """当月 bonus_count += amount（0 仅确保记录存在）

        Raises:
            ValueError: amount 为负数
        """
        if amount < 0:
            raise ValueError(f"bonus amount must be non-negative, got {amount}")
        year, month = self.month_bucket(now)
        await self._usage_store.upsert_add_bonus(owner_id, year, month, amount)

    async def rollover_on_downgrade(
        self,
        owner_id: str,
        old_plan: Plan | None,
        now: datetime,
        event_key: str,
    ) -> int:
        """降级结转：旧套餐当月未用完的部分转为 bonus

        有限旧套餐结转 max(0, ai_quota - used)；无限旧套餐结转固定基准。
        同一用户的同一 event_key 只生效一次，重复调用返回 0 且不做任何修改。

        Returns:
            本次新增的 bonus
        """
        key = self._adjustment_key(AdjustmentKind.ROLLOVER, owner_id, event_key)
        if await self._usage_store.get_adjustment(key) is not None:
            log.info("rollover_already_applied", owner_id=owner_id, event_key=event_key)
            return 0

        if old_plan is None:
            amount = 0
        elif old_plan.is_unlimited:
            amount = self._unlimited_baseline
        else:
            used, _ = await self._usage(owner_id, now)
            amount = max(0, (old_plan.ai_quota or 0) - used)

        if not await self._claim(owner_id, key, AdjustmentKind.ROLLOVER, amount, now):
            return 0
        await self.add_bonus(owner_id, now, amount)
        log.info(
            "rollover_applied",
            owner_id=owner_id,
            old_plan_id=old_plan and old_plan.plan_id,
            amount=amount,
        )
        return amount

    async def grant_credits(
        self,
        owner_id: str,
        now: datetime,
        amount: int,
        payment_ref: str,
    ) -> bool:
        """点数包入账，按支付引用幂等

        Returns:
            True 表示本次入账；False 表示该支付已处理过
        """
        if amount < 0:
            raise ValueError(f"credit amount must be non-negative, got {amount}")
        key = self._adjustment_key(AdjustmentKind.CREDIT_PACK, owner_id, payment_ref)
        if await self._usage_store.get_adjustment(key) is not None:
            log.info("credit_pack_already_granted", owner_id=owner_id, payment_ref=payment_ref)
            return False
        if not await self._claim(owner_id, key, AdjustmentKind.CREDIT_PACK, amount, now):
            return False
        await self.add_bonus(owner_id, now, amount)
        log.info("credit_pack_granted", owner_id=owner_id, amount=amount)
        return True

    # ============================================================
    # 视图
    # ============================================================

    async def status(
        self,
        owner_id: str,
        resolved: ResolvedPlan,
        now: datetime,
        ai_configured: bool = True,
    ) -> QuotaStatus:
        """当前用户配额视图（含重置日与剩余天数）"""
        plan = resolved.plan
        used, bonus = await self._usage(owner_id, now)
        quota = self.effective_quota(plan, bonus)
        reset = self.reset_date(now)
        today = self._to_local(now).date()
        return QuotaStatus(
            plan_id=plan.plan_id if plan else None,
            plan_name=plan.name if plan else "",
            plan_source=resolved.source,
            unlimited=quota is None,
            used=used,
            bonus=bonus,
            remaining=None if quota is None else max(0, quota - used),
            ai_configured=ai_configured,
            reset_date=reset,
            days_until_reset=max(0, (reset - today).days),
        )

    def reset_date(self, now: datetime) -> date:
        """下个月 1 日（账本时区）"""
        local = self._to_local(now).date()
        first = local.replace(day=1)
        return (first + timedelta(days=32)).replace(day=1)

    @staticmethod
    def is_downgrade(current: Plan | None, new: Plan | None) -> bool:
        """新套餐额度严格小于当前套餐额度（无限视为正无穷）"""

        def _rank(plan: Plan | None) -> float:
            if plan is None:
                return 0
            if plan.is_unlimited:
                return float("inf")
            return plan.ai_quota or 0

        return _rank(new) < _rank(current)

    # ============================================================
    # 内部方法
    # ============================================================

    @staticmethod
    def _adjustment_key(kind: AdjustmentKind, owner_id: str, ref: str) -> str:
        # 幂等键按类型与用户隔离
        return f"{kind.value}:{owner_id}:{ref}"

    def _to_local(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(self._tz)

    async def _usage(self, owner_id: str, now: datetime) -> tuple[int, int]:
        year, month = self.month_bucket(now)
        record = await self._usage_store.get_usage(owner_id, year, month)
        if record is None:
            return 0, 0
        return record.used_count, record.bonus_count

    async def _claim(
        self,
        owner_id: str,
        key: str,
        kind: AdjustmentKind,
        amount: int,
        now: datetime,
    ) -> bool:
        year, month = self.month_bucket(now)
        return await self._usage_store.insert_adjustment(
            QuotaAdjustment(
                adjustment_key=key,
                owner_id=owner_id,
                kind=kind,
                amount=amount,
                year=year,
                month=month,
                created_at=now,
            )
        )


class PlanResolver:
    """套餐解析：身份上下文提示 -> 用户已存储套餐 -> 第一个套餐"""

    def __init__(self, plan_store: PlanStore) -> None:
        self._plan_store = plan_store

    async def resolve(self, owner_id: str, plan_id_hint: int | None = None) -> ResolvedPlan:
        if plan_id_hint is not None:
            plan = await self._plan_store.get_plan(plan_id_hint)
            if plan is not None:
                return ResolvedPlan(plan=plan, source="token")
            log.warning("plan_hint_unknown", owner_id=owner_id, plan_id=plan_id_hint)

        stored_id = await self._plan_store.get_account_plan_id(owner_id)
        if stored_id is not None:
            plan = await self._plan_store.get_plan(stored_id)
            if plan is not None:
                return ResolvedPlan(plan=plan, source="db")

        plans = await self._plan_store.list_plans()
        if plans:
            return ResolvedPlan(plan=plans[0], source="fallback")
        return ResolvedPlan(plan=None, source="none")
