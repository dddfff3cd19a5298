"""模型响应解析 -- 候选子任务提取、正规化与去重

容忍 markdown 代码围栏、JSON 前后的说明文字、字符串条目，
非 JSON 内容退化为逐行（项目符号 / 编号）解析；以 { 或 [ 开头却无法解析的
响应（如被截断）整体丢弃。畸形条目静默丢弃。
"""

import json
import re

import structlog

from .models import ProposedItem

log = structlog.get_logger()

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_BULLET_RE = re.compile(r"^\s*(?:[-*•・]|\d+[.)、](?!\d)|[(（]\d+[)）])\s*")
_WS_RE = re.compile(r"\s+")

# 行解析时忽略的 JSON 结构残片
_JSON_NOISE = frozenset({"{", "}", "[", "]", "},", "],"})


def normalize_text(text: str | None) -> str:
    """去重用正规化：去首尾空白、去前导项目符号/编号、合并空白、大写"""
    if not text:
        return ""
    t = _BULLET_RE.sub("", text.strip(), count=1)
    t = _WS_RE.sub(" ", t).strip()
    return t.upper()


def parse_children(
    content: str | None,
    max_children: int | None = 12,
) -> list[ProposedItem]:
    """从响应文本中提取候选子任务，最多 max_children 条（None 不截断）"""
    if not content or not content.strip():
        return []

    payload = _load_json(content)
    if payload is not None:
        items = _items_from_json(payload)
    elif _looks_like_json(content):
        # 截断或畸形的 JSON：整体丢弃，不退化为逐行解析
        log.warning("generation_content_malformed_json", length=len(content))
        items = []
    else:
        log.debug("generation_content_not_json", length=len(content))
        items = _items_from_lines(content)
    if max_children is None:
        return items
    return items[:max_children]


def drop_echoes(
    items: list[ProposedItem],
    parent_title: str | None,
    parent_description: str | None,
) -> list[ProposedItem]:
    """丢弃与父任务标题/说明相同的条目（模型把 prompt 回显成子任务）"""
    parents = {p for p in (normalize_text(parent_title), normalize_text(parent_description)) if p}
    if not parents:
        return list(items)
    kept = []
    for item in items:
        if normalize_text(item.title) in parents or normalize_text(item.description) in parents:
            continue
        kept.append(item)
    if len(kept) != len(items):
        log.debug("generation_echoes_dropped", dropped=len(items) - len(kept))
    return kept


def _load_json(content: str):
    candidates = [content.strip()]
    fence = _FENCE_RE.search(content)
    if fence:
        candidates.append(fence.group(1).strip())
    # 前后带说明文字时，截取第一个 { 到最后一个 } 之间
    start, end = content.find("{"), content.rfind("}")
    if 0 <= start < end:
        candidates.append(content[start : end + 1])
    start, end = content.find("["), content.rfind("]")
    if 0 <= start < end:
        candidates.append(content[start : end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
    return None


def _items_from_json(payload) -> list[ProposedItem]:
    if isinstance(payload, dict):
        entries = payload.get("children")
        if entries is None:
            entries = payload.get("items") or payload.get("subtasks")
    elif isinstance(payload, list):
        entries = payload
    else:
        return []
    if not isinstance(entries, list):
        return []

    items: list[ProposedItem] = []
    for entry in entries:
        item = _item_from_entry(entry)
        if item is not None:
            items.append(item)
    return items


def _item_from_entry(entry) -> ProposedItem | None:
    if isinstance(entry, str):
        title = _BULLET_RE.sub("", entry.strip(), count=1).strip()
        if not title:
            return None
        return ProposedItem(title=title, from_plain_text=True)
    if isinstance(entry, dict):
        title = entry.get("title")
        description = entry.get("description", "")
        if not isinstance(title, str) or not title.strip():
            return None
        if not isinstance(description, str):
            description = ""
        return ProposedItem(title=title.strip(), description=description.strip())
    return None


def _looks_like_json(content: str) -> bool:
    """首个非围栏字符为 { 或 [ 时视为 JSON 响应"""
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1].strip() if "\n" in text else ""
    return text.startswith(("{", "["))


def _items_from_lines(content: str) -> list[ProposedItem]:
    items: list[ProposedItem] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line in _JSON_NOISE or line.startswith(("```", "{", "[", "\"")):
            continue
        text = _BULLET_RE.sub("", line, count=1).strip()
        if text:
            items.append(ProposedItem(title=text, from_plain_text=True))
    return items
