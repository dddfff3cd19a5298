"""EchoOutlineAdapter -- 离线传输模式

不访问网络：从 user message 的 "Description:" 行中按行/句切分出候选子任务，
返回与真实端点相同形状的 JSON 内容。用于本地开发与端到端测试。
"""

import asyncio
import json
import re
import time

from .models import ModelCallResult, TokenUsage

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?。！？;；])\s*|\n+")
_TITLE_MAX = 80

# 单句说明时使用的阶段模板
_PHASES = ("Clarify scope", "Carry out", "Review result")


class EchoOutlineAdapter:
    """与 LiteLLMClient 同接口的离线适配器"""

    configured = True
    api_base = "echo://local"

    async def complete(
        self,
        messages: list[dict[str, str]],
        timeout_s: float | None = None,
        **kwargs,
    ) -> ModelCallResult:
        start_time = time.monotonic()
        user_content = self._extract_last_user_content(messages)
        description = self._field(user_content, "Description") or self._field(
            user_content, "Parent title"
        )

        # 模拟少量延迟
        await asyncio.sleep(0.01)

        children = [
            {"title": self._title(segment), "description": segment}
            for segment in self.outline(description)
        ]
        content = json.dumps({"children": children}, ensure_ascii=False)

        prompt_tokens = len(user_content.split())
        completion_tokens = len(content.split())
        return ModelCallResult(
            content=content,
            model_name="echo",
            provider="echo",
            duration_ms=int((time.monotonic() - start_time) * 1000),
            token_usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def health_check(self) -> bool:
        return True

    @staticmethod
    def outline(text: str) -> list[str]:
        """按行/句切分；只有一段时展开为三个阶段"""
        segments = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text or "") if s and s.strip()]
        if len(segments) >= 2:
            return segments
        if not segments:
            return []
        return [f"{phase}: {segments[0]}" for phase in _PHASES]

    @staticmethod
    def _title(segment: str) -> str:
        if len(segment) <= _TITLE_MAX:
            return segment
        return segment[: _TITLE_MAX - 1].rstrip() + "…"

    @staticmethod
    def _field(content: str, name: str) -> str:
        prefix = f"{name}:"
        for line in content.splitlines():
            if line.startswith(prefix):
                return line[len(prefix) :].strip()
        return ""

    @staticmethod
    def _extract_last_user_content(messages: list[dict[str, str]]) -> str:
        for msg in reversed(messages):
            if msg.get("role") == "user":
                return msg.get("content", "")
        if messages:
            return messages[-1].get("content", "")
        return ""
