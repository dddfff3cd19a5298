"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性与 WAL 模式、磁盘空间、生成服务熔断状态。
         profile=llm 时额外探测上游生成服务。
"""

import shutil

import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse
from tasktree.core.store.sqlite_init import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="检查配置文件：core（默认）仅核心检查；llm/full 包含上游生成服务探测",
    ),
):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性；wal_mode: WAL 是否生效（仅报告，不影响就绪）
    2. disk_space_mb: 磁盘剩余空间
    3. generator: 生成服务是否已配置（未配置时分解接口返回 503，不影响就绪）
    4. circuit_breaker: 熔断器状态（open 时不影响就绪）
    5. llm_upstream: 根据 profile 决定是否探测
    """
    effective_profile = profile or "core"

    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
        checks["wal_mode"] = "ok" if await verify_wal_mode(store_group.conn) else "disabled"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        checks["sqlite"] = "unavailable"
        all_ok = False

    # 2. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    # 3/4. 生成服务配置与熔断状态
    generator = request.app.state.decomposition_service.generator
    checks["generator"] = "configured" if generator.configured else "not_configured"
    snapshot = generator.breaker.snapshot()
    checks["circuit_breaker"] = snapshot.state

    # 5. 上游探测
    if effective_profile in ("llm", "full") and generator.configured:
        try:
            if await generator.health_check():
                checks["llm_upstream"] = "ok"
            else:
                checks["llm_upstream"] = "unreachable"
                all_ok = False
        except Exception as e:
            log.warning("health_check_error", error=str(e))
            checks["llm_upstream"] = "unreachable"
            all_ok = False
    else:
        checks["llm_upstream"] = "skipped"

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "profile": effective_profile,
            "checks": checks,
        },
    )
