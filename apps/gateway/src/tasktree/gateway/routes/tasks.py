"""任务树路由

GET    /api/tasks                    调用方的任务森林
POST   /api/tasks                    创建根任务或子任务（可选立即分解）
GET    /api/tasks/{task_id}          单个任务的子树
PUT    /api/tasks/{task_id}          更新字段（parent_id 不可变）
DELETE /api/tasks/{task_id}          删除任务及其全部后代
POST   /api/tasks/{task_id}/decompose  （重新）生成子任务
"""

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from tasktree.core.models import TaskDraft, TaskNode

from ..deps import Identity, get_decomposition_service, get_identity
from ..services.decomposition_service import (
    DecomposeRequest,
    DecompositionOutcome,
    DecompositionService,
)

router = APIRouter()


class TaskCreateRequest(TaskDraft):
    """任务创建请求体"""

    parent_id: str | None = Field(default=None, description="父任务 ID，缺省为根任务")
    ai_decompose: bool = Field(default=False, description="创建后立即进行 AI 分解")


class TaskListResponse(BaseModel):
    """任务森林响应"""

    tasks: list[TaskNode]


class DeleteResponse(BaseModel):
    """删除响应"""

    task_id: str
    deleted: int


@router.get("/api/tasks", response_model=TaskListResponse)
async def list_tasks(
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """返回调用方的任务森林（根任务按创建顺序）"""
    return TaskListResponse(tasks=await service.list_tree(identity.owner_id))


@router.post("/api/tasks")
async def create_task(
    body: TaskCreateRequest,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """创建任务

    - 201: 创建成功（ai_decompose 时含分解结果或警告）
    - 400: 父任务无效；422: 父任务已在最大深度
    - 402 / 503: ai_decompose 时额度耗尽 / 服务未配置（此时不创建任何任务）
    """
    plan = None
    if body.ai_decompose:
        resolved = await service.resolve_plan(identity.owner_id, identity.plan_id_hint)
        plan = resolved.plan

    draft = TaskDraft.model_validate(body.model_dump(include=set(TaskDraft.model_fields)))
    outcome = await service.create_task(
        identity.owner_id,
        draft,
        parent_id=body.parent_id,
        ai_decompose=body.ai_decompose,
        plan=plan,
    )
    return JSONResponse(status_code=201, content=outcome.model_dump(mode="json"))


@router.get("/api/tasks/{task_id}", response_model=TaskNode)
async def get_task(
    task_id: str,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """返回以该任务为根的子树"""
    return await service.hierarchy.build_subtree(identity.owner_id, task_id)


@router.put("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    body: TaskDraft,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """更新任务字段，子任务保持不变"""
    task = await service.update_task(identity.owner_id, task_id, body)
    return {"task": task.model_dump(mode="json")}


@router.delete("/api/tasks/{task_id}", response_model=DeleteResponse)
async def delete_task(
    task_id: str,
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """删除任务及其全部后代"""
    deleted = await service.delete_task(identity.owner_id, task_id)
    return DeleteResponse(task_id=task_id, deleted=deleted)


@router.post("/api/tasks/{task_id}/decompose", response_model=DecompositionOutcome)
async def decompose_task(
    task_id: str,
    body: DecomposeRequest | None = Body(default=None),
    identity: Identity = Depends(get_identity),
    service: DecompositionService = Depends(get_decomposition_service),
):
    """（重新）生成子任务，旧后代被整体替换

    - 200: 成功，或节点已在最大深度（skipped_reason="max_depth"）
    - 402: 额度耗尽；503: 服务未配置
    - 422: 输入含糊 / 上游失败 / 无可用子任务
    """
    resolved = await service.resolve_plan(identity.owner_id, identity.plan_id_hint)
    return await service.decompose(identity.owner_id, task_id, resolved.plan, request=body)
