"""ResilientGenerationClient -- 超时 + 指数退避重试 + 熔断

一次逻辑请求的调用序列：
    1. 凭证缺失 -> ProviderNotConfiguredError（不发起网络请求）
    2. 熔断窗口内 -> 失败结果（skipped_reason="circuit_open"），不发起网络请求
    3. 构建 prompt，发起一次带超时的尝试；成功则重置熔断计数并解析
    4. 失败且 attempt <= max_retries：退避 min(initial * 2^(attempt-1), max) 后重试；
       重试耗尽：熔断器记录一次失败（可能打开），返回失败结果

失败结果与空结果都不抛异常，由调用方决定如何向用户呈现。
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

import structlog

from .circuit_breaker import CircuitBreaker
from .client import LiteLLMClient
from .config import ProviderConfig
from .echo_adapter import EchoOutlineAdapter
from .exceptions import ProviderNotConfiguredError, UpstreamTransientError
from .models import GenerationRequest, GenerationResult, ModelCallResult
from .parsing import drop_echoes, parse_children
from .prompt import build_messages, is_ambiguous

log = structlog.get_logger()


class GenerationTransport(Protocol):
    """传输策略接口（litellm / echo），由配置显式选择"""

    @property
    def configured(self) -> bool: ...

    @property
    def api_base(self) -> str: ...

    async def complete(
        self,
        messages: list[dict[str, str]],
        timeout_s: float | None = None,
        **kwargs,
    ) -> ModelCallResult: ...

    async def health_check(self) -> bool: ...


def create_transport(config: ProviderConfig) -> GenerationTransport:
    """按 llm_mode 创建传输实现"""
    if config.llm_mode == "echo":
        return EchoOutlineAdapter()
    return LiteLLMClient(
        api_base=config.api_base,
        api_key=config.api_key.get_secret_value(),
        model=config.model,
        timeout_s=config.timeout_s,
    )


def compute_backoff(attempt: int, initial_s: float, max_s: float) -> float:
    """第 attempt 次失败后的退避时长"""
    return min(initial_s * (2 ** (attempt - 1)), max_s)


class ResilientGenerationClient:
    """带重试与熔断的生成客户端"""

    def __init__(
        self,
        transport: GenerationTransport,
        breaker: CircuitBreaker,
        timeout_s: float = 30.0,
        max_retries: int = 2,
        initial_backoff_s: float = 0.5,
        max_backoff_s: float = 4.0,
        max_children: int = 12,
        ambiguity_min_chars: int = 20,
        ambiguity_min_words: int = 3,
        output_language: str = "Japanese",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._breaker = breaker
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._initial_backoff_s = initial_backoff_s
        self._max_backoff_s = max_backoff_s
        self._max_children = max_children
        self._min_chars = ambiguity_min_chars
        self._min_words = ambiguity_min_words
        self._language = output_language
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        transport: GenerationTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> "ResilientGenerationClient":
        return cls(
            transport=transport or create_transport(config),
            breaker=breaker
            or CircuitBreaker(
                failure_threshold=config.breaker_failure_threshold,
                open_duration_s=config.breaker_open_duration_s,
            ),
            timeout_s=config.timeout_s,
            max_retries=config.max_retries,
            initial_backoff_s=config.initial_backoff_s,
            max_backoff_s=config.max_backoff_s,
            max_children=config.max_children,
            ambiguity_min_chars=config.ambiguity_min_chars,
            ambiguity_min_words=config.ambiguity_min_words,
            output_language=config.output_language,
        )

    @property
    def configured(self) -> bool:
        return self._transport.configured

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def max_children(self) -> int:
        return self._max_children

    def is_ambiguous(self, request: GenerationRequest) -> bool:
        """请求的基准文本是否过于含糊（含糊时调用方不应发起生成）"""
        return is_ambiguous(request.base_text, self._min_chars, self._min_words)

    async def health_check(self) -> bool:
        return await self._transport.health_check()

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """执行一次逻辑生成请求

        Raises:
            ProviderNotConfiguredError: 凭证缺失
        """
        start_time = time.monotonic()

        if not self._transport.configured:
            raise ProviderNotConfiguredError()

        if self._breaker.is_open():
            log.warning("generation_skipped_circuit_open")
            return GenerationResult(failed=True, skipped_reason="circuit_open")

        messages = build_messages(request, self._language)

        attempt = 0
        while True:
            attempt += 1
            try:
                call = await self._transport.complete(messages, timeout_s=self._timeout_s)
            except UpstreamTransientError as e:
                if attempt <= self._max_retries:
                    delay = compute_backoff(attempt, self._initial_backoff_s, self._max_backoff_s)
                    log.info(
                        "generation_retry_scheduled",
                        attempt=attempt,
                        delay_s=delay,
                        status_code=e.status_code,
                    )
                    await self._sleep(delay)
                    continue

                opened = self._breaker.record_failure()
                duration_ms = int((time.monotonic() - start_time) * 1000)
                log.error(
                    "generation_failed",
                    attempts=attempt,
                    breaker_opened=opened,
                    error=str(e),
                    duration_ms=duration_ms,
                )
                return GenerationResult(failed=True, attempts=attempt, duration_ms=duration_ms)

            self._breaker.record_success()
            break

        # 先去重再截断，回显条目不占用 max_children 名额
        items = parse_children(call.content, max_children=None)
        items = drop_echoes(items, request.title, request.description)
        items = items[: self._max_children]

        duration_ms = int((time.monotonic() - start_time) * 1000)
        log.info(
            "generation_completed",
            attempts=attempt,
            items=len(items),
            duration_ms=duration_ms,
        )
        return GenerationResult(items=items, attempts=attempt, duration_ms=duration_ms)
