"""AI 分解相关路由

POST /api/ai/tasks/breakdown  分解预览（不创建任务）
GET  /api/ai/quota            当月额度状态
POST /api/ai/credits          点数包入账（按支付引用幂等）
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from tasktree.core.models import QuotaStatus

from ..deps import Identity, get_decomposition_service, get_identity
from ..services.decomposition_service import (
    BreakdownPreview,
    DecomposeRequest,
    DecompositionService,
)

router = APIRouter()


class CreditGrantRequest(BaseModel):
    """点数包入账请求体（支付已在外部完成校验）"""

    amount: int = Field(gt=0, description="增加的分解次数")
    payment_ref: str = Field(min_length=1, description="支付引用，用作幂等键")


class CreditGrantResponse(BaseModel):
    granted: bool
    quota: QuotaStatus


@router.post("/api/ai/tasks/breakdown", response_model=BreakdownPreview)
async def breakdown(
    body: DecomposeRequest,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """分解预览

    含糊输入 / 无结果 / 服务未配置以 warning 返回（200）；额度耗尽返回 402。
    """
    resolved = await service.resolve_plan(identity.owner_id, identity.plan_id_hint)
    return await service.preview(identity.owner_id, resolved.plan, body)


@router.get("/api/ai/quota", response_model=QuotaStatus)
async def quota(
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """当月额度状态（套餐、已用、bonus、剩余、重置日）"""
    resolved = await service.resolve_plan(identity.owner_id, identity.plan_id_hint)
    return await service.quota_status(identity.owner_id, resolved)


@router.post("/api/ai/credits", response_model=CreditGrantResponse)
async def grant_credits(
    body: CreditGrantRequest,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """点数包入账；同一 payment_ref 重复提交时 granted=false"""
    granted = await service.grant_credits(identity.owner_id, body.amount, body.payment_ref)
    resolved = await service.resolve_plan(identity.owner_id, identity.plan_id_hint)
    return CreditGrantResponse(
        granted=granted,
        quota=await service.quota_status(identity.owner_id, resolved),
    )
