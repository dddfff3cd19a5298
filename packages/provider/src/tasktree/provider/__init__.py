"""TaskTree Provider -- 弹性生成客户端

packages/provider 的公开接口导出。
"""

# 核心组件
from .circuit_breaker import BreakerSnapshot, CircuitBreaker
from .client import LiteLLMClient

# 配置
from .config import ProviderConfig, load_provider_config
from .echo_adapter import EchoOutlineAdapter

# 异常
from .exceptions import ProviderError, ProviderNotConfiguredError, UpstreamTransientError

# 数据模型
from .models import (
    GenerationRequest,
    GenerationResult,
    ModelCallResult,
    ProposedItem,
    TokenUsage,
)
from .parsing import drop_echoes, normalize_text, parse_children
from .prompt import build_messages, is_ambiguous
from .resilience import (
    GenerationTransport,
    ResilientGenerationClient,
    compute_backoff,
    create_transport,
)

__all__ = [
    "GenerationRequest",
    "GenerationResult",
    "ModelCallResult",
    "ProposedItem",
    "TokenUsage",
    "CircuitBreaker",
    "BreakerSnapshot",
    "LiteLLMClient",
    "EchoOutlineAdapter",
    "GenerationTransport",
    "ResilientGenerationClient",
    "compute_backoff",
    "create_transport",
    "build_messages",
    "is_ambiguous",
    "parse_children",
    "drop_echoes",
    "normalize_text",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "UpstreamTransientError",
    "ProviderNotConfiguredError",
]
