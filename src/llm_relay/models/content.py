import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AdaptedTurn:
    """A turn reshaped for one provider: plain text or ordered content blocks."""
    role: str
    content: str | list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @property
    def text(self) -> str:
        return extract_text(self.content)


def extract_text(content: Any) -> str:
    """Flatten chunk or message content to a string.

    Strings pass through, lists concatenate their string items and the
    ``text`` field of block items, and single objects yield ``text`` or
    ``content``. Blocks without text (images, tool-use) are ignored.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
            elif isinstance(getattr(item, "text", None), str):
                parts.append(item.text)
        return "".join(parts)
    if isinstance(content, dict):
        value = content.get("text", content.get("content"))
        return value if isinstance(value, str) else ""
    value = getattr(content, "text", None) or getattr(content, "content", None)
    return value if isinstance(value, str) else ""


def stringify_content(content: Any) -> str:
    """Content as a string for concatenation; non-strings are JSON-encoded."""
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, default=str)
