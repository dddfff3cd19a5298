"""DecompositionService -- 分解编排

组合 TaskHierarchy、QuotaLedger、ResilientGenerationClient：

1. 授权：任务必须存在且属于调用方
2. 深度：节点已在最大深度时跳过生成（非错误），原样返回子树
3. 额度闸门：check_and_reserve（不修改状态）
4. 含糊闸门：含糊输入直接失败，不发起外部调用
5. 生成：带重试与熔断的外部调用；无可用条目即失败
6. 单事务落库：删除旧后代 -> 创建新子任务 -> 标记 decomposed_at -> 记录用量
7. 返回刷新后的子树

外部调用在事务开启之前完成，避免在共享连接上跨越数秒的网络调用持有写事务；
可观察效果与"先清理再生成"一致：旧子任务当且仅当新子任务提交时消失。
外部调用本身不回滚。同一进程内对同一任务的重新分解由 task 级锁串行化，
跨进程仍为 last-writer-wins。
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, date, datetime

import structlog
from pydantic import BaseModel, Field, field_validator
from tasktree.core.config import TASK_TITLE_MAX_LENGTH
from tasktree.core.exceptions import (
    DecompositionFailedError,
    InvalidPlanError,
    PersistenceError,
    ServiceUnavailableError,
    TaskTreeError,
)
from tasktree.core.hierarchy import TaskHierarchy
from tasktree.core.models import (
    Plan,
    QuotaStatus,
    ResolvedPlan,
    Task,
    TaskDraft,
    TaskNode,
    TaskPriority,
    TaskStatus,
    normalize_priority,
    parse_due_date,
)
from tasktree.core.quota import PlanResolver, QuotaLedger
from tasktree.core.store import StoreGroup
from tasktree.provider import (
    GenerationRequest,
    ProposedItem,
    ProviderNotConfiguredError,
    ResilientGenerationClient,
)

log = structlog.get_logger()

AMBIGUOUS_WARNING = (
    "The task is too vague to break down. Add a more specific description "
    "(for example the goal, deliverables or steps) and try again."
)
NO_ITEMS_WARNING = (
    "No sub-task suggestions were produced; only the parent task was kept. "
    "A more specific description makes decomposition more likely to succeed."
)
UPSTREAM_FAILED_WARNING = (
    "The AI service is temporarily unavailable; only the parent task was kept. "
    "Please try again later."
)


class DecompositionPolicy(BaseModel):
    """生成子任务的字段继承策略"""

    inherit_due_date: bool = Field(default=True, description="子任务继承父任务期限日")
    inherit_priority: bool = Field(default=True, description="子任务继承父任务优先级")


class DecomposeRequest(BaseModel):
    """分解请求覆盖字段；缺省时回退到任务已存储的字段"""

    title: str | None = None
    description: str | None = None
    due_date: date | None = None
    priority: TaskPriority | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value):
        return parse_due_date(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value):
        if value is None or not str(value).strip():
            return None
        return normalize_priority(value)


class DecompositionOutcome(BaseModel):
    """一次分解的结果"""

    task: TaskNode = Field(description="刷新后的子树")
    created: int = Field(default=0, ge=0, description="本次创建的子任务数")
    removed: int = Field(default=0, ge=0, description="本次删除的旧后代数")
    skipped_reason: str | None = Field(default=None, description="max_depth")
    remaining: int | None = Field(default=None, description="分解后剩余额度，None 表示无限")
    warning: str | None = None
    warning_code: str | None = None


class BreakdownPreview(BaseModel):
    """分解预览（不落库）"""

    children: list[ProposedItem] = Field(default_factory=list)
    warning: str | None = None
    warning_code: str | None = None


class DowngradeOutcome(BaseModel):
    """套餐变更结果"""

    previous_plan_id: int | None
    plan_id: int
    downgraded: bool
    rolled_over: int = 0


class DecompositionService:
    """分解编排服务（进程内单例，持有 task 级锁）"""

    def __init__(
        self,
        store_group: StoreGroup,
        generator: ResilientGenerationClient,
        policy: DecompositionPolicy | None = None,
        ledger: QuotaLedger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._stores = store_group
        self._generator = generator
        self._policy = policy or DecompositionPolicy()
        self._hierarchy = TaskHierarchy(store_group.task_store)
        self._ledger = ledger or QuotaLedger(store_group.usage_store)
        self._resolver = PlanResolver(store_group.plan_store)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._task_locks: dict[str, asyncio.Lock] = {}
        self._task_lock_refs: dict[str, int] = {}
        self._task_locks_guard = asyncio.Lock()

    @property
    def hierarchy(self) -> TaskHierarchy:
        return self._hierarchy

    @property
    def ledger(self) -> QuotaLedger:
        return self._ledger

    @property
    def generator(self) -> ResilientGenerationClient:
        return self._generator

    # ============================================================
    # 分解
    # ============================================================

    async def decompose(
        self,
        owner_id: str,
        task_id: str,
        plan: Plan | None,
        request: DecomposeRequest | None = None,
        now: datetime | None = None,
    ) -> DecompositionOutcome:
        """为任务（重新）生成子任务

        Raises:
            TaskNotFoundError: 任务不存在或不属于调用方
            ServiceUnavailableError: 生成服务未配置
            QuotaExceededError: 当月额度耗尽
            DecompositionFailedError: 输入含糊 / 上游失败 / 无可用条目
            PersistenceError: 落库失败（已回滚）
        """
        now = now or self._clock()
        request = request or DecomposeRequest()

        # 1. 授权
        task = await self._hierarchy.get_task(owner_id, task_id)

        # 2. 深度
        depth = await self._hierarchy.depth_of(owner_id, task_id)
        if depth >= self._hierarchy.max_depth:
            log.info("decompose_skipped_max_depth", task_id=task_id, depth=depth)
            return DecompositionOutcome(
                task=await self._hierarchy.build_subtree(owner_id, task_id),
                skipped_reason="max_depth",
                remaining=await self._ledger.remaining(owner_id, plan, now),
            )

        # 3. 额度闸门
        await self._ledger.check_and_reserve(
            owner_id, plan, now, ai_configured=self._generator.configured
        )

        # 4. 含糊闸门
        gen_request = self._effective_request(task, request)
        if self._generator.is_ambiguous(gen_request):
            log.info("decompose_rejected_ambiguous", task_id=task_id)
            raise DecompositionFailedError("ambiguous", AMBIGUOUS_WARNING)

        # 5. 生成
        items = await self._generate(gen_request)

        # 6. 单事务落库
        drafts = self._drafts_for(items, gen_request)
        lock = await self._get_task_lock(task_id)
        try:
            async with lock:
                removed, created = await self._replace_children(owner_id, task_id, drafts, now)
        finally:
            await self._cleanup_task_lock(task_id)

        log.info(
            "decompose_completed",
            task_id=task_id,
            owner_id=owner_id,
            removed=removed,
            created=len(created),
        )

        # 7. 刷新子树
        return DecompositionOutcome(
            task=await self._hierarchy.build_subtree(owner_id, task_id),
            created=len(created),
            removed=removed,
            remaining=await self._ledger.remaining(owner_id, plan, now),
        )

    async def preview(
        self,
        owner_id: str,
        plan: Plan | None,
        request: DecomposeRequest,
        now: datetime | None = None,
    ) -> BreakdownPreview:
        """分解预览：不创建任务；返回至少一条建议时计入当月用量

        未配置 / 含糊 / 无条目 / 上游失败均以软警告返回；额度耗尽仍为错误。
        """
        now = now or self._clock()
        if not self._generator.configured:
            return BreakdownPreview(
                warning="AI decomposition is not configured.",
                warning_code=ServiceUnavailableError.code,
            )
        await self._ledger.check_and_reserve(owner_id, plan, now)

        gen_request = GenerationRequest(
            title=(request.title or "").strip(),
            description=(request.description or "").strip(),
            due_date=request.due_date,
            priority=request.priority.value if request.priority else None,
        )
        if self._generator.is_ambiguous(gen_request):
            return BreakdownPreview(warning=AMBIGUOUS_WARNING, warning_code="ambiguous")

        try:
            items = await self._generate(gen_request)
        except DecompositionFailedError as e:
            return BreakdownPreview(warning=e.message, warning_code=e.reason)

        try:
            async with self._stores.transaction():
                await self._ledger.record_usage(owner_id, now)
        except Exception as e:
            log.error("preview_usage_record_failed", owner_id=owner_id, error=str(e))
            raise PersistenceError(f"failed to record usage: {e}") from e
        return BreakdownPreview(children=items)

    # ============================================================
    # 任务 CRUD（分解之外的薄封装）
    # ============================================================

    async def create_task(
        self,
        owner_id: str,
        draft: TaskDraft,
        parent_id: str | None = None,
        ai_decompose: bool = False,
        plan: Plan | None = None,
        now: datetime | None = None,
    ) -> DecompositionOutcome:
        """创建根任务或子任务，可选立即分解

        额度与服务配置在创建前检查（失败时什么都不创建）；
        含糊 / 无条目 / 上游失败只作为警告返回，父任务创建始终成功。
        """
        now = now or self._clock()
        if ai_decompose:
            await self._ledger.check_and_reserve(
                owner_id, plan, now, ai_configured=self._generator.configured
            )

        task = await self._in_transaction(
            self._create_one(owner_id, draft, parent_id, now),
            "create_task",
        )

        if not ai_decompose:
            return DecompositionOutcome(
                task=await self._hierarchy.build_subtree(owner_id, task.task_id)
            )

        try:
            return await self.decompose(owner_id, task.task_id, plan, now=now)
        except DecompositionFailedError as e:
            log.info("create_task_decompose_soft_fail", task_id=task.task_id, reason=e.reason)
            return DecompositionOutcome(
                task=await self._hierarchy.build_subtree(owner_id, task.task_id),
                remaining=await self._ledger.remaining(owner_id, plan, now),
                warning=e.message,
                warning_code=e.reason,
            )

    async def update_task(
        self,
        owner_id: str,
        task_id: str,
        draft: TaskDraft,
        now: datetime | None = None,
    ) -> Task:
        now = now or self._clock()
        return await self._in_transaction(
            self._hierarchy.update_fields(owner_id, task_id, draft, now),
            "update_task",
        )

    async def delete_task(self, owner_id: str, task_id: str) -> int:
        lock = await self._get_task_lock(task_id)
        try:
            async with lock:
                return await self._in_transaction(
                    self._hierarchy.delete_subtree(owner_id, task_id),
                    "delete_task",
                )
        finally:
            await self._cleanup_task_lock(task_id)

    async def list_tree(self, owner_id: str) -> list[TaskNode]:
        return await self._hierarchy.build_tree(owner_id)

    # ============================================================
    # 配额与套餐
    # ============================================================

    async def resolve_plan(self, owner_id: str, plan_id_hint: int | None) -> ResolvedPlan:
        return await self._resolver.resolve(owner_id, plan_id_hint)

    async def quota_status(self, owner_id: str, resolved: ResolvedPlan) -> QuotaStatus:
        return await self._ledger.status(
            owner_id, resolved, self._clock(), ai_configured=self._generator.configured
        )

    async def grant_credits(self, owner_id: str, amount: int, payment_ref: str) -> bool:
        """点数包入账（支付校验由外部完成），按支付引用幂等"""
        now = self._clock()
        return await self._in_transaction(
            self._ledger.grant_credits(owner_id, now, amount, payment_ref),
            "grant_credits",
        )

    async def change_plan(
        self,
        owner_id: str,
        current: ResolvedPlan,
        new_plan_id: int,
        event_key: str,
    ) -> DowngradeOutcome:
        """切换套餐；属于降级时先将旧套餐当月未用额度结转为 bonus

        Raises:
            InvalidPlanError: 新套餐不存在
        """
        now = self._clock()
        new_plan = await self._stores.plan_store.get_plan(new_plan_id)
        if new_plan is None:
            raise InvalidPlanError(new_plan_id)

        downgraded = self._ledger.is_downgrade(current.plan, new_plan)

        async def _apply() -> int:
            rolled = 0
            if downgraded:
                rolled = await self._ledger.rollover_on_downgrade(
                    owner_id, current.plan, now, event_key
                )
            await self._stores.plan_store.set_account_plan(owner_id, new_plan.plan_id, now)
            return rolled

        rolled_over = await self._in_transaction(_apply(), "change_plan")
        log.info(
            "plan_changed",
            owner_id=owner_id,
            previous_plan_id=current.plan and current.plan.plan_id,
            plan_id=new_plan.plan_id,
            downgraded=downgraded,
            rolled_over=rolled_over,
        )
        return DowngradeOutcome(
            previous_plan_id=current.plan.plan_id if current.plan else None,
            plan_id=new_plan.plan_id,
            downgraded=downgraded,
            rolled_over=rolled_over,
        )

    # ============================================================
    # 内部方法
    # ============================================================

    async def _generate(self, gen_request: GenerationRequest) -> list[ProposedItem]:
        try:
            result = await self._generator.generate(gen_request)
        except ProviderNotConfiguredError as e:
            raise ServiceUnavailableError() from e

        if result.items:
            return result.items
        if result.failed:
            reason = result.skipped_reason or "upstream_failed"
            log.warning("decompose_upstream_failed", reason=reason, attempts=result.attempts)
            raise DecompositionFailedError(reason, UPSTREAM_FAILED_WARNING)
        raise DecompositionFailedError("no_items", NO_ITEMS_WARNING)

    async def _replace_children(
        self,
        owner_id: str,
        task_id: str,
        drafts: list[TaskDraft],
        now: datetime,
    ) -> tuple[int, list[Task]]:
        async def _apply() -> tuple[int, list[Task]]:
            removed = await self._hierarchy.delete_descendants(owner_id, task_id)
            created = await self._hierarchy.create_children(owner_id, task_id, drafts, now)
            await self._hierarchy.mark_decomposed(owner_id, task_id, now)
            await self._ledger.record_usage(owner_id, now)
            return removed, created

        return await self._in_transaction(_apply(), "replace_children")

    async def _in_transaction(self, work, operation: str):
        """在事务中执行 work；领域异常原样抛出，其余包装为 PersistenceError"""
        try:
            async with self._stores.transaction():
                return await work
        except TaskTreeError:
            raise
        except Exception as e:
            log.error(
                "transaction_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(f"{operation} failed and was rolled back: {e}") from e

    async def _create_one(
        self,
        owner_id: str,
        draft: TaskDraft,
        parent_id: str | None,
        now: datetime,
    ) -> Task:
        if parent_id is None:
            return await self._hierarchy.create_root(owner_id, draft, now)
        return await self._hierarchy.create_child(owner_id, parent_id, draft, now)

    @staticmethod
    def _effective_request(task: Task, request: DecomposeRequest) -> GenerationRequest:
        def _pick(override: str | None, stored: str) -> str:
            if override is not None and override.strip():
                return override.strip()
            return stored

        priority = request.priority or task.priority
        return GenerationRequest(
            title=_pick(request.title, task.title),
            description=_pick(request.description, task.description),
            due_date=request.due_date or task.due_date,
            priority=priority.value,
        )

    def _drafts_for(
        self,
        items: list[ProposedItem],
        gen_request: GenerationRequest,
    ) -> list[TaskDraft]:
        due_date = gen_request.due_date if self._policy.inherit_due_date else None
        priority = (
            gen_request.priority if self._policy.inherit_priority else TaskPriority.NORMAL
        )
        drafts: list[TaskDraft] = []
        for n, item in enumerate(items[: self._generator.max_children], start=1):
            if item.from_plain_text:
                title = f"{gen_request.title} - subtask {n}"
                description = item.title
            else:
                title = item.title
                description = item.description
            drafts.append(
                TaskDraft(
                    title=title[:TASK_TITLE_MAX_LENGTH],
                    description=description,
                    due_date=due_date,
                    priority=priority,
                    status=TaskStatus.TODO,
                )
            )
        return drafts

    async def _get_task_lock(self, task_id: str) -> asyncio.Lock:
        """获取 task 级别锁，序列化同一任务的子树替换"""
        async with self._task_locks_guard:
            lock = self._task_locks.get(task_id)
            if lock is None:
                lock = asyncio.Lock()
                self._task_locks[task_id] = lock
            self._task_lock_refs[task_id] = self._task_lock_refs.get(task_id, 0) + 1
            return lock

    async def _cleanup_task_lock(self, task_id: str) -> None:
        """最后一个持有者离开时清理 lock

        按引用计数判断：release 之后、被唤醒的等待者重新获取之前 locked() 为 False，
        不能据此判断无人等待。
        """
        async with self._task_locks_guard:
            refs = self._task_lock_refs.get(task_id, 0) - 1
            if refs > 0:
                self._task_lock_refs[task_id] = refs
                return
            self._task_lock_refs.pop(task_id, None)
            self._task_locks.pop(task_id, None)
