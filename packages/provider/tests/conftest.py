"""Provider 包测试 fixtures"""

import json

import pytest
from tasktree.provider.exceptions import UpstreamTransientError
from tasktree.provider.models import GenerationRequest, ModelCallResult


@pytest.fixture
def sample_messages() -> list[dict[str, str]]:
    """标准 messages 格式测试数据"""
    return [
        {"role": "system", "content": "You output strictly a single JSON object."},
        {"role": "user", "content": "Parent title: Plan launch\nDescription: Ship it."},
    ]


@pytest.fixture
def launch_request() -> GenerationRequest:
    """Plan launch 示例请求"""
    return GenerationRequest(
        title="Plan launch",
        description=(
            "Coordinate marketing, engineering, and support teams "
            "for the Q3 product launch across three regions"
        ),
    )


class ManualClock:
    """可手动推进的单调时钟"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedTransport:
    """按脚本依次返回内容或抛出异常的传输替身"""

    api_base = "http://fake"

    def __init__(self, script: list, configured: bool = True) -> None:
        self._script = list(script)
        self.configured = configured
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages, timeout_s=None, **kwargs) -> ModelCallResult:
        self.calls.append(messages)
        step = self._script.pop(0) if self._script else self._script_default()
        if isinstance(step, Exception):
            raise step
        return ModelCallResult(content=step, duration_ms=1)

    async def health_check(self) -> bool:
        return True

    @staticmethod
    def _script_default():
        return UpstreamTransientError("http://fake", RuntimeError("script exhausted"))


def children_json(*titles: str) -> str:
    """构造 {"children": [...]} 响应"""
    return json.dumps(
        {"children": [{"title": t, "description": f"{t} details"} for t in titles]}
    )


def transient() -> UpstreamTransientError:
    return UpstreamTransientError("http://fake", RuntimeError("503"), status_code=503)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scripted():
    """ScriptedTransport 构造器"""
    return ScriptedTransport


@pytest.fixture
def make_children():
    """children_json 构造器"""
    return children_json


@pytest.fixture
def make_transient():
    """UpstreamTransientError 构造器"""
    return transient
