"""Prompt 模板与含糊输入闸门

build_messages 是纯函数：同样的输入总是得到同样的 messages。
"""

from .models import GenerationRequest

SYSTEM_PROMPT = (
    "You output strictly a single JSON object. "
    "Keys must be in English (children/title/description). "
    "All values must be in {language}. No extra text."
)

USER_PROMPT = (
    "You are a task decomposition assistant. Break the parent task below into "
    "small, concrete child tasks that together accomplish it, and return them as JSON.\n"
    "Parent title: {title}\n"
    "Description: {description}\n"
    "{extra}"
    "Required: every title and description value must be written in {language}.\n"
    'Output format, exactly: {{"children":[{{"title":"...","description":"..."}}]}}'
)


def build_messages(
    request: GenerationRequest,
    language: str = "Japanese",
) -> list[dict[str, str]]:
    """构建 system + user 两条消息"""
    extra = ""
    if request.due_date is not None:
        extra += f"Due date: {request.due_date.isoformat()}\n"
    if request.priority:
        extra += f"Priority: {request.priority}\n"
    return [
        {"role": "system", "content": SYSTEM_PROMPT.format(language=language)},
        {
            "role": "user",
            "content": USER_PROMPT.format(
                title=request.title or "",
                description=request.description or "",
                extra=extra,
                language=language,
            ),
        },
    ]


def is_ambiguous(text: str | None, min_chars: int = 20, min_words: int = 3) -> bool:
    """基准文本是否过于含糊

    空白文本总是含糊；否则只有字符数与词数同时低于阈值才判为含糊，
    任一阈值满足即放行。
    """
    base = text or ""
    stripped = base.strip()
    if not stripped:
        return True
    words = len(stripped.split())
    return len(base) < min_chars and words < min_words
