"""数据模型 -- 生成请求 / 候选子任务 / 生成结果 / 单次调用结果"""

from datetime import date

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token 使用统计

    key 命名对齐 OpenAI/LiteLLM 行业标准：
    prompt_tokens / completion_tokens / total_tokens
    """

    prompt_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    completion_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    total_tokens: int = Field(default=0, ge=0, description="总 token 数")


class ModelCallResult(BaseModel):
    """传输层单次调用结果，litellm 与 echo 模式统一返回此类型"""

    content: str = Field(description="响应文本内容（期望为 JSON 对象）")
    model_name: str = Field(default="", description="实际调用的模型名称")
    provider: str = Field(default="", description="实际 provider（openai / echo）")
    duration_ms: int = Field(ge=0, description="端到端耗时（毫秒）")
    token_usage: TokenUsage = Field(
        default_factory=TokenUsage,
        description="Token 使用详情",
    )


class GenerationRequest(BaseModel):
    """一次分解请求的有效字段（已按"请求优先、任务字段兜底"合并）"""

    title: str = Field(default="", description="父任务标题")
    description: str = Field(default="", description="父任务说明")
    due_date: date | None = Field(default=None, description="期限日")
    priority: str | None = Field(default=None, description="优先级")

    @property
    def base_text(self) -> str:
        """含糊判定的基准文本：说明优先，空白时使用标题"""
        if self.description and self.description.strip():
            return self.description
        return self.title or ""


class ProposedItem(BaseModel):
    """候选子任务"""

    title: str = Field(description="子任务标题")
    description: str = Field(default="", description="子任务说明")
    from_plain_text: bool = Field(
        default=False,
        description="来自纯文本条目（非 {title, description} 对象）",
    )


class GenerationResult(BaseModel):
    """一次逻辑请求的结果；failed 与空 items 均不抛异常"""

    items: list[ProposedItem] = Field(default_factory=list)
    attempts: int = Field(default=0, ge=0, description="实际发出的网络尝试次数")
    failed: bool = Field(default=False, description="重试耗尽或熔断跳过")
    skipped_reason: str | None = Field(
        default=None,
        description="未发起调用的原因（circuit_open）",
    )
    duration_ms: int = Field(default=0, ge=0)

    @property
    def ok(self) -> bool:
        return not self.failed and bool(self.items)
