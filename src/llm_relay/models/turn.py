"""Persisted conversation model shared by the store, adapter and controller."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"


def generate_message_id() -> str:
    return uuid4().hex


class TurnStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class ImageAttachment:
    """An image attached to a user turn.

    Either field may hold a bare base64 payload or a full ``data:`` URI.
    """
    full_image: str | None = None
    thumbnail: str | None = None
    mime_type: str | None = None

    @property
    def data(self) -> str | None:
        return self.full_image or self.thumbnail

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        if self.full_image:
            d["full_image"] = self.full_image
        if self.thumbnail:
            d["thumbnail"] = self.thumbnail
        if self.mime_type:
            d["mime_type"] = self.mime_type
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageAttachment":
        return cls(
            full_image=data.get("full_image") or data.get("fullImage"),
            thumbnail=data.get("thumbnail"),
            mime_type=data.get("mime_type") or data.get("mimeType"),
        )


@dataclass
class NotesAttachment:
    title: str
    content: str
    node_label: str | None = None

    def render(self) -> str:
        """Text block appended after the user's message."""
        origin = f" (from node: {self.node_label})" if self.node_label else ""
        return f"\n\n--- ATTACHED NOTES: {self.title} ---{origin}\n{self.content}\n--- END NOTES ---"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"title": self.title, "content": self.content}
        if self.node_label:
            d["node_label"] = self.node_label
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotesAttachment":
        return cls(
            title=data.get("title", ""),
            content=data.get("content", ""),
            node_label=data.get("node_label") or data.get("nodeLabel"),
        )


@dataclass
class Attachments:
    images: list[ImageAttachment] = field(default_factory=list)
    notes: list[NotesAttachment] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.images or self.notes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "images": [img.to_dict() for img in self.images],
            "notes": [note.to_dict() for note in self.notes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachments":
        return cls(
            images=[ImageAttachment.from_dict(img) for img in data.get("images") or []],
            notes=[NotesAttachment.from_dict(note) for note in data.get("notes") or []],
        )


@dataclass
class ToolInvocation:
    """A tool call requested by the model.

    ``error`` is set when the arguments could not be parsed; such an
    invocation is reported back to the model instead of being executed.
    """
    id: str
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "name": self.name, "parameters": self.parameters}
        if self.error:
            d["error"] = self.error
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolInvocation":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            parameters=data.get("parameters") or {},
            error=data.get("error"),
        )


@dataclass
class ToolResult:
    tool_call_id: str
    name: str
    result: Any

    def to_dict(self) -> dict[str, Any]:
        return {"tool_call_id": self.tool_call_id, "name": self.name, "result": self.result}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolResult":
        return cls(
            tool_call_id=data.get("tool_call_id", ""),
            name=data.get("name", ""),
            result=data.get("result"),
        )


@dataclass
class ConversationTurn:
    """One stored message in a thread."""
    role: str
    content: Any = ""
    id: str = field(default_factory=generate_message_id)
    timestamp: float = field(default_factory=time.time)
    status: TurnStatus = TurnStatus.COMPLETED
    attachments: Attachments | None = None
    tool_calls: list[ToolInvocation] | None = None
    tool_results: list[ToolResult] | None = None
    citations: list[str] | None = None
    model: str | None = None

    @property
    def images(self) -> list[ImageAttachment]:
        return self.attachments.images if self.attachments else []

    @property
    def notes(self) -> list[NotesAttachment]:
        return self.attachments.notes if self.attachments else []

    def is_blank(self) -> bool:
        """True when there is nothing to send: no text and no attachments."""
        if self.attachments:
            return False
        if self.content is None:
            return True
        if isinstance(self.content, str):
            return not self.content.strip()
        return not self.content

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "status": self.status.value,
        }
        if self.attachments:
            d["attachments"] = self.attachments.to_dict()
        if self.tool_calls:
            d["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_results:
            d["tool_results"] = [tr.to_dict() for tr in self.tool_results]
        if self.citations:
            d["citations"] = list(self.citations)
        if self.model:
            d["model"] = self.model
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationTurn":
        attachments = data.get("attachments")
        tool_calls = data.get("tool_calls")
        tool_results = data.get("tool_results")
        return cls(
            role=data.get("role", ROLE_USER),
            content=data.get("content", ""),
            id=data.get("id") or generate_message_id(),
            timestamp=data.get("timestamp") or time.time(),
            status=TurnStatus(data.get("status", TurnStatus.COMPLETED.value)),
            attachments=Attachments.from_dict(attachments) if attachments else None,
            tool_calls=[ToolInvocation.from_dict(tc) for tc in tool_calls] if tool_calls else None,
            tool_results=[ToolResult.from_dict(tr) for tr in tool_results] if tool_results else None,
            citations=data.get("citations"),
            model=data.get("model"),
        )
