"""任务级 trace_id 推导

trace_id 由路径中的 task_id 生成（/api/tasks/{task_id}[/decompose]），
同一任务的创建、分解、删除日志可按 trace_id 串联。由 LoggingMiddleware 绑定。
"""

import re

# ULID: 26 位 Crockford Base32
_TASK_PATH_RE = re.compile(r"/api/tasks/([0-9A-HJKMNP-TV-Z]{26})(?:/|$)")


def trace_id_for_path(path: str) -> str | None:
    """从请求路径提取 trace_id，非任务路径返回 None"""
    match = _TASK_PATH_RE.search(path)
    if match is None:
        return None
    return f"trace-{match.group(1)}"
