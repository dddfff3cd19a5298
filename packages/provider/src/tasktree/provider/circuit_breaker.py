"""CircuitBreaker -- 生成端点熔断器

可注入实例（非模块级单例），状态读写由 threading.Lock 保护，
时钟可注入以便测试。

状态:
    Closed: opened_at 为 None，或已超过 open_duration（隐式半开，允许下一次尝试）
    Open:   opened_at 已设置且 now - opened_at < open_duration，调用被直接跳过
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass
class BreakerSnapshot:
    """熔断器状态快照（用于 /ready 与日志）"""

    state: str
    consecutive_failures: int
    opened_at: float | None
    failure_threshold: int
    open_duration_s: float


class CircuitBreaker:
    """连续失败计数熔断器"""

    def __init__(
        self,
        failure_threshold: int = 5,
        open_duration_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._failure_threshold = failure_threshold
        self._open_duration_s = open_duration_s
        self._clock = clock
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._opened_at: float | None = None

    def is_open(self) -> bool:
        """处于熔断窗口内返回 True"""
        with self._lock:
            return self._is_open_locked()

    def record_success(self) -> None:
        """成功后清零计数并关闭熔断"""
        with self._lock:
            was_open = self._opened_at is not None
            self._consecutive_failures = 0
            self._opened_at = None
        if was_open:
            log.info("circuit_breaker_closed")

    def record_failure(self) -> bool:
        """记录一个失败的调用序列

        Returns:
            本次调用是否使熔断器（重新）打开
        """
        with self._lock:
            self._consecutive_failures += 1
            failures = self._consecutive_failures
            opened = failures >= self._failure_threshold
            if opened:
                self._opened_at = self._clock()
        if opened:
            log.warning(
                "circuit_breaker_opened",
                consecutive_failures=failures,
                open_duration_s=self._open_duration_s,
            )
        return opened

    def snapshot(self) -> BreakerSnapshot:
        with self._lock:
            return BreakerSnapshot(
                state="open" if self._is_open_locked() else "closed",
                consecutive_failures=self._consecutive_failures,
                opened_at=self._opened_at,
                failure_threshold=self._failure_threshold,
                open_duration_s=self._open_duration_s,
            )

    def _is_open_locked(self) -> bool:
        if self._opened_at is None:
            return False
        return self._clock() - self._opened_at < self._open_duration_s
