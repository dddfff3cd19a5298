"""原子事务封装

在同一 SQLite 连接上提交一组写操作：正常退出时 commit，
任何异常都先 rollback 再原样抛出。Store 方法本身从不提交。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def transaction(
    conn: aiosqlite.Connection,
    write_lock: asyncio.Lock | None = None,
) -> AsyncIterator[aiosqlite.Connection]:
    """事务上下文

    Args:
        conn: 数据库连接（所有写操作需在同一连接上进行）
        write_lock: 共享连接上的写锁；传入时整个事务期间持有，
            避免并发协程的写入落入同一个 SQLite 事务

    Raises:
        Exception: 事务体或提交失败时回滚并原样抛出
    """
    if write_lock is None:
        async with _run(conn) as c:
            yield c
        return
    async with write_lock:
        async with _run(conn) as c:
            yield c


@asynccontextmanager
async def _run(conn: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    try:
        yield conn
        await conn.commit()
    except BaseException:
        await conn.rollback()
        raise
