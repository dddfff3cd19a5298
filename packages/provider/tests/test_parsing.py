"""响应解析单元测试

测试内容：
1. 标准 {"children": [...]} 对象
2. 代码围栏 / 前后说明文字容忍
3. 字符串条目与畸形条目
4. 非 JSON 内容的逐行退化解析
5. 截断与正规化去重
"""

from tasktree.provider.models import ProposedItem
from tasktree.provider.parsing import drop_echoes, normalize_text, parse_children


class TestParseChildren:
    """候选子任务提取"""

    def test_standard_object(self):
        items = parse_children(
            '{"children":[{"title":"A","description":"a"},{"title":"B","description":"b"}]}'
        )
        assert [(i.title, i.description) for i in items] == [("A", "a"), ("B", "b")]
        assert not any(i.from_plain_text for i in items)

    def test_code_fence_and_prose(self):
        content = (
            "Sure! Here is the breakdown:\n"
            "```json\n"
            '{"children": [{"title": "Draft agenda", "description": "one page"}]}\n'
            "```\n"
            "Let me know if you need more."
        )
        items = parse_children(content)
        assert [i.title for i in items] == ["Draft agenda"]

    def test_plain_string_entries(self):
        items = parse_children('{"children": ["1. Book venue", "- Send invites", ""]}')
        assert [i.title for i in items] == ["Book venue", "Send invites"]
        assert all(i.from_plain_text for i in items)

    def test_malformed_entries_dropped(self):
        content = (
            '{"children": [{"title": ""}, {"description": "no title"}, 42, null,'
            ' {"title": "Keep", "description": 7}]}'
        )
        items = parse_children(content)
        assert items == [ProposedItem(title="Keep", description="")]

    def test_bare_array(self):
        items = parse_children('[{"title": "X"}, "Y"]')
        assert [i.title for i in items] == ["X", "Y"]

    def test_line_fallback(self):
        content = "Steps:\n- Pick a date\n* Reserve room\n• Order food\n2) Send recap"
        items = parse_children(content)
        assert [i.title for i in items] == [
            "Steps:",
            "Pick a date",
            "Reserve room",
            "Order food",
            "Send recap",
        ]

    def test_decimal_not_treated_as_numbering(self):
        items = parse_children("3.5 hours of review")
        assert items[0].title == "3.5 hours of review"

    def test_truncated_at_max(self):
        content = '{"children": [' + ",".join(f'"item {n}"' for n in range(20)) + "]}"
        assert len(parse_children(content, max_children=12)) == 12
        assert len(parse_children(content, max_children=None)) == 20

    def test_empty_content(self):
        assert parse_children(None) == []
        assert parse_children("  \n ") == []

    def test_truncated_json_yields_nothing(self):
        content = '{"children":[{"title":"Book venue","description":"x"},{"title":"Send invi'
        assert parse_children(content) == []

    def test_fenced_truncated_json_yields_nothing(self):
        content = (
            '```json\n{"children": [\n'
            '  {"title": "Book venue",\n  "description": "x"},\n  {"title": "Send invi'
        )
        assert parse_children(content) == []

    def test_line_fallback_skips_json_fragments(self):
        content = 'Ideas\n"title": "Book venue",\n{"title": "x"\n[1, 2\n- Send invites'
        assert [i.title for i in parse_children(content)] == ["Ideas", "Send invites"]

    def test_object_without_children(self):
        assert parse_children('{"answer": "nothing"}') == []


class TestNormalizeAndDedup:
    """正规化与去重"""

    def test_normalize(self):
        assert normalize_text("  -   Plan\t the   launch ") == "PLAN THE LAUNCH"
        assert normalize_text("• ship") == "SHIP"
        assert normalize_text(None) == ""

    def test_drop_echo_of_title_or_description(self):
        items = [
            ProposedItem(title="PLAN LAUNCH", description="x"),
            ProposedItem(title="Prepare", description="coordinate   the teams"),
            ProposedItem(title="Prepare slides", description="deck"),
        ]
        kept = drop_echoes(items, "Plan launch", "Coordinate the teams")
        assert [i.title for i in kept] == ["Prepare slides"]

    def test_blank_parent_fields_ignored(self):
        items = [ProposedItem(title="A", description="")]
        assert drop_echoes(items, "", None) == items
