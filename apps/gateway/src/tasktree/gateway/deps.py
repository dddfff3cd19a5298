"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / 服务 / 调用方身份

Store 与服务实例通过 app.state 管理，在 lifespan 中初始化/清理。
身份由上游认证层解析后以请求头传入：
  X-Owner-Id  调用方用户 ID（必需）
  X-Plan-Id   令牌中携带的套餐 ID（可选，优先于数据库中的套餐）
"""

from fastapi import Header, Request
from pydantic import BaseModel
from tasktree.core.store import StoreGroup

from .errors import AuthenticationRequiredError
from .services.decomposition_service import DecompositionService


class Identity(BaseModel):
    """已认证的调用方"""

    owner_id: str
    plan_id_hint: int | None = None


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_decomposition_service(request: Request) -> DecompositionService:
    """从 app.state 获取 DecompositionService 单例"""
    return request.app.state.decomposition_service


def get_identity(
    x_owner_id: str | None = Header(default=None),
    x_plan_id: int | None = Header(default=None),
) -> Identity:
    """解析调用方身份；缺少 X-Owner-Id 时返回 401"""
    if x_owner_id is None or not x_owner_id.strip():
        raise AuthenticationRequiredError()
    return Identity(owner_id=x_owner_id.strip(), plan_id_hint=x_plan_id)
