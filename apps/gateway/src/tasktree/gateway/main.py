"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 生成客户端与分解服务初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from tasktree.core.config import get_db_path
from tasktree.core.store import create_store_group
from tasktree.provider import ResilientGenerationClient, load_provider_config

from .errors import register_exception_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import ai, health, subscription, tasks
from .services.decomposition_service import DecompositionService

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和生成组件，关闭时清理连接"""
    # 启动：初始化 Store
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    # 生成客户端（熔断器为进程内单例，随客户端注入）
    provider_config = load_provider_config()
    app.state.provider_config = provider_config
    generator = ResilientGenerationClient.from_config(provider_config)

    app.state.decomposition_service = DecompositionService(store_group, generator)
    log.info(
        "decomposition_service_initialized",
        mode=provider_config.llm_mode,
        configured=generator.configured,
        model=provider_config.model,
        timeout_s=provider_config.timeout_s,
        max_retries=provider_config.max_retries,
    )

    yield

    # 关闭：清理数据库连接
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskTree Gateway",
        version="0.1.0",
        description="TaskTree 层级任务与 AI 分解 API",
        lifespan=lifespan,
    )

    # 注册中间件
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    register_exception_handlers(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(ai.router, tags=["ai"])
    app.include_router(subscription.router, tags=["subscription"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
