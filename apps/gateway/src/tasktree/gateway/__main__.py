"""python -m tasktree.gateway -- 以 uvicorn 启动 Gateway

TASKTREE_HOST / TASKTREE_PORT 控制监听地址（默认 127.0.0.1:8000）。
"""

import os

import uvicorn


def main() -> None:
    host = os.environ.get("TASKTREE_HOST", "127.0.0.1")
    port = int(os.environ.get("TASKTREE_PORT", "8000"))
    uvicorn.run("tasktree.gateway.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
