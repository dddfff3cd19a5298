"""LiteLLMClient -- OpenAI 兼容 chat completions 调用封装

通过 litellm.acompletion() 发送 JSON 模式请求（temperature=0，
response_format=json_object，Bearer 凭证）。任何一次失败都包装为
UpstreamTransientError，由 ResilientGenerationClient 决定是否重试。
"""

import time

import httpx
import structlog
from litellm import acompletion

from .exceptions import ProviderError, ProviderNotConfiguredError, UpstreamTransientError
from .models import ModelCallResult, TokenUsage

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 连接类异常类型集合（不可达 / 超时）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误"""
    if isinstance(e, _CONNECTION_ERROR_TYPES):
        return True
    # LiteLLM 的 APIConnectionError / Timeout 也属于连接类错误
    error_name = type(e).__name__
    return error_name in ("APIConnectionError", "APITimeoutError", "Timeout")


class LiteLLMClient:
    """OpenAI 兼容端点客户端"""

    def __init__(
        self,
        api_base: str = "https://api.openai.com/v1",
        api_key: str = "",
        model: str = "gpt-4o-mini",
        timeout_s: float = 30.0,
    ) -> None:
        """
        Args:
            api_base: chat completions 端点基础 URL
            api_key: Bearer 凭证
            model: 模型名（不含 provider 前缀时按 openai 路由）
            timeout_s: 单次请求超时（秒）
        """
        self._api_base = api_base.rstrip("/")
        self._api_key = api_key
        self._model = model if "/" in model else f"openai/{model}"
        self._timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def api_base(self) -> str:
        return self._api_base

    async def complete(
        self,
        messages: list[dict[str, str]],
        timeout_s: float | None = None,
        temperature: float = 0.0,
        **kwargs,
    ) -> ModelCallResult:
        """发送一次 chat completion 请求（不重试）

        Returns:
            ModelCallResult

        Raises:
            ProviderNotConfiguredError: 凭证缺失（不发起任何网络请求）
            UpstreamTransientError: 非 2xx、超时、连接错误等
        """
        if not self._api_key:
            raise ProviderNotConfiguredError()

        start_time = time.monotonic()
        try:
            log.debug(
                "litellm_call_start",
                model=self._model,
                message_count=len(messages),
            )

            response = await acompletion(
                model=self._model,
                messages=messages,
                api_base=self._api_base,
                api_key=self._api_key,
                temperature=temperature,
                response_format={"type": "json_object"},
                timeout=timeout_s or self._timeout_s,
                # 重试由 ResilientGenerationClient 统一负责
                max_retries=0,
                **kwargs,
            )

            duration_ms = int((time.monotonic() - start_time) * 1000)
            content = response.choices[0].message.content or ""
            model_name = getattr(response, "model", "") or self._model

            log.info(
                "litellm_call_completed",
                model_name=model_name,
                duration_ms=duration_ms,
                content_length=len(content),
            )

            return ModelCallResult(
                content=content,
                model_name=model_name,
                provider="openai",
                duration_ms=duration_ms,
                token_usage=self._parse_usage(response),
            )

        except ProviderError:
            raise
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            connection_error = _is_connection_error(e)
            status_code = getattr(e, "status_code", None)
            log.warning(
                "litellm_call_failed",
                model=self._model,
                error=str(e),
                error_type=type(e).__name__,
                status_code=status_code,
                connection_error=connection_error,
                duration_ms=duration_ms,
            )
            raise UpstreamTransientError(
                api_base=self._api_base,
                original_error=e,
                status_code=status_code if isinstance(status_code, int) else None,
                connection_error=connection_error,
            ) from e

    async def health_check(self) -> bool:
        """检查端点可达性与凭证有效性

        发送 GET {api_base}/models 请求。此方法不抛出异常。
        """
        if not self._api_key:
            return False
        url = f"{self._api_base}/models"
        try:
            async with httpx.AsyncClient() as http_client:
                resp = await http_client.get(
                    url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    timeout=HEALTH_CHECK_TIMEOUT_S,
                )
                return resp.status_code == 200
        except Exception as e:
            log.debug("health_check_failed", url=url, error=str(e))
            return False

    @staticmethod
    def _parse_usage(response) -> TokenUsage:
        usage = getattr(response, "usage", None)
        if usage is None:
            return TokenUsage()
        try:
            return TokenUsage(
                prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
                completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
                total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
            )
        except (TypeError, ValueError):
            return TokenUsage()
