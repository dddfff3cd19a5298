"""EchoOutlineAdapter 单元测试"""

import json

from tasktree.provider.echo_adapter import EchoOutlineAdapter
from tasktree.provider.models import GenerationRequest
from tasktree.provider.parsing import parse_children
from tasktree.provider.prompt import build_messages


class TestEchoOutlineAdapter:
    """离线传输"""

    async def test_sentences_become_children(self):
        request = GenerationRequest(
            title="Move house",
            description="Book movers for Saturday. Pack the kitchen! Update mailing address.",
        )
        result = await EchoOutlineAdapter().complete(build_messages(request))

        payload = json.loads(result.content)
        titles = [c["title"] for c in payload["children"]]
        assert titles == ["Book movers for Saturday.", "Pack the kitchen!", "Update mailing address."]
        assert result.provider == "echo"
        assert result.token_usage.total_tokens > 0

    async def test_single_sentence_expands_to_phases(self, launch_request):
        result = await EchoOutlineAdapter().complete(build_messages(launch_request))
        items = parse_children(result.content)
        assert len(items) == 3
        assert items[0].title.startswith("Clarify scope: Coordinate marketing")

    async def test_no_user_message(self):
        result = await EchoOutlineAdapter().complete([])
        assert json.loads(result.content) == {"children": []}

    async def test_always_configured_and_healthy(self):
        adapter = EchoOutlineAdapter()
        assert adapter.configured is True
        assert await adapter.health_check() is True

    def test_long_segment_title_truncated(self):
        title = EchoOutlineAdapter._title("x" * 200)
        assert len(title) == 80
        assert title.endswith("…")
