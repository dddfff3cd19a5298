"""订阅变更路由

POST /api/subscription/plan: 切换套餐；降级时结转旧套餐当月未用额度。
计费系统的 webhook 事件 ID 作为 event_key，保证重复投递只结转一次。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import Identity, get_decomposition_service, get_identity
from ..services.decomposition_service import DecompositionService, DowngradeOutcome

router = APIRouter()


class PlanChangeRequest(BaseModel):
    """套餐变更请求体"""

    plan_id: int = Field(description="新套餐 ID")
    event_key: str = Field(min_length=1, description="计费事件 ID（幂等键）")


@router.post("/api/subscription/plan", response_model=DowngradeOutcome)
async def change_plan(
    body: PlanChangeRequest,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """切换套餐

    当前套餐按数据库记录解析（不使用令牌提示），避免客户端伪造降级前的套餐。
    """
    current = await service.resolve_plan(identity.owner_id, None)
    return await service.change_plan(identity.owner_id, current, body.plan_id, body.event_key)
