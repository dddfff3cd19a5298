"""ProviderConfig -- Provider 配置加载

从环境变量加载配置；数值非法时记录警告并保留默认值，不阻塞启动。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError

log = structlog.get_logger()


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        TASKTREE_LLM_MODE: 传输模式（litellm/echo）
        TASKTREE_LLM_API_BASE: OpenAI 兼容端点（默认 https://api.openai.com/v1）
        OPENAI_API_KEY: Bearer 凭证
        TASKTREE_LLM_MODEL: 模型名（默认 gpt-4o-mini）
        TASKTREE_LLM_TIMEOUT_S: 单次尝试超时（秒，默认 30）
    """

    llm_mode: Literal["litellm", "echo"] = Field(
        default="litellm",
        description="传输模式：litellm / echo",
    )
    api_base: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI 兼容 chat completions 端点基础 URL",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer 凭证，缺失时生成服务视为未配置",
    )
    model: str = Field(default="gpt-4o-mini", description="模型名")
    output_language: str = Field(
        default="Japanese",
        description="子任务标题与说明的输出语言",
    )

    # 重试与超时
    timeout_s: float = Field(default=30.0, gt=0, description="单次尝试超时（秒）")
    max_retries: int = Field(default=2, ge=0, description="首次失败后的最大重试次数")
    initial_backoff_s: float = Field(default=0.5, ge=0, description="首次退避（秒）")
    max_backoff_s: float = Field(default=4.0, ge=0, description="退避上限（秒）")

    # 熔断器
    breaker_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="连续失败多少个调用序列后熔断",
    )
    breaker_open_duration_s: float = Field(
        default=30.0,
        ge=0,
        description="熔断持续时间（秒）",
    )

    # 解析与闸门
    max_children: int = Field(default=12, ge=1, description="单次分解最多子任务数")
    ambiguity_min_chars: int = Field(default=20, ge=0, description="含糊判定的最小字符数")
    ambiguity_min_words: int = Field(default=3, ge=0, description="含糊判定的最小词数")

    @property
    def configured(self) -> bool:
        """echo 模式无需凭证；litellm 模式需要非空 API key"""
        return self.llm_mode == "echo" or bool(self.api_key.get_secret_value())


# (环境变量, 字段名, 类型)
_NUMERIC_ENV: list[tuple[str, str, type]] = [
    ("TASKTREE_LLM_TIMEOUT_S", "timeout_s", float),
    ("TASKTREE_LLM_MAX_RETRIES", "max_retries", int),
    ("TASKTREE_LLM_INITIAL_BACKOFF_S", "initial_backoff_s", float),
    ("TASKTREE_LLM_MAX_BACKOFF_S", "max_backoff_s", float),
    ("TASKTREE_BREAKER_FAILURE_THRESHOLD", "breaker_failure_threshold", int),
    ("TASKTREE_BREAKER_OPEN_DURATION_S", "breaker_open_duration_s", float),
    ("TASKTREE_MAX_CHILDREN", "max_children", int),
    ("TASKTREE_AMBIGUITY_MIN_CHARS", "ambiguity_min_chars", int),
    ("TASKTREE_AMBIGUITY_MIN_WORDS", "ambiguity_min_words", int),
]


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置

    Returns:
        ProviderConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKTREE_LLM_MODE"):
        if val in ("litellm", "echo"):
            kwargs["llm_mode"] = val
        else:
            log.warning(
                "invalid_llm_mode_config",
                env_var="TASKTREE_LLM_MODE",
                value=val,
                fallback="litellm",
            )

    if val := os.environ.get("TASKTREE_LLM_API_BASE"):
        kwargs["api_base"] = val

    if val := os.environ.get("OPENAI_API_KEY"):
        kwargs["api_key"] = SecretStr(val)

    if val := os.environ.get("TASKTREE_LLM_MODEL"):
        kwargs["model"] = val

    if val := os.environ.get("TASKTREE_LLM_OUTPUT_LANGUAGE"):
        kwargs["output_language"] = val

    defaults = ProviderConfig.model_fields
    for env_var, field, cast in _NUMERIC_ENV:
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            parsed = cast(val)
            # 按字段约束校验（如超时必须为正数）
            ProviderConfig(**{field: parsed})
        except (ValueError, ValidationError):
            log.warning(
                "invalid_numeric_config",
                env_var=env_var,
                value=val,
                fallback=defaults[field].default,
            )
            # 使用默认值，不阻塞启动
            continue
        kwargs[field] = parsed

    return ProviderConfig(**kwargs)
