"""Provider 异常体系"""


class ProviderError(Exception):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class UpstreamTransientError(ProviderError):
    """生成端点的一次尝试失败（非 2xx、超时、连接错误等）

    ResilientGenerationClient 对此异常按退避策略重试。
    """

    def __init__(
        self,
        api_base: str,
        original_error: Exception,
        status_code: int | None = None,
        connection_error: bool = False,
    ) -> None:
        """
        Args:
            api_base: 请求的端点地址
            original_error: 原始异常
            status_code: 上游返回的 HTTP 状态码（如有）
            connection_error: 是否为连接类错误（不可达 / 超时）
        """
        super().__init__(
            f"生成端点调用失败: {api_base} -- {original_error}",
            recoverable=True,
        )
        self.api_base = api_base
        self.original_error = original_error
        self.status_code = status_code
        self.connection_error = connection_error


class ProviderNotConfiguredError(ProviderError):
    """生成服务凭证缺失，在任何网络请求之前拒绝"""

    def __init__(self, message: str = "生成服务未配置 API key") -> None:
        super().__init__(message, recoverable=False)
