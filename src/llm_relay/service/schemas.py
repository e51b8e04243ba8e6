"""Pydantic schemas for the llm-relay service API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from .. import __version__
from ..models.turn import ConversationTurn, ImageAttachment, NotesAttachment

SERVICE_VERSION = __version__


class ImagePayload(BaseModel):
    """An image attached to a user message (base64 or data URI)."""
    full_image: str | None = None
    thumbnail: str | None = None
    mime_type: str | None = None

    def to_attachment(self) -> ImageAttachment:
        return ImageAttachment(full_image=self.full_image, thumbnail=self.thumbnail, mime_type=self.mime_type)


class NotePayload(BaseModel):
    title: str
    content: str
    node_label: str | None = None

    def to_attachment(self) -> NotesAttachment:
        return NotesAttachment(title=self.title, content=self.content, node_label=self.node_label)


class MessageRequest(BaseModel):
    """A user message for a thread."""
    content: str
    model: str | None = Field(default=None, description="Model alias from models.yaml")
    system_prompt: str | None = None
    message_id: str | None = Field(default=None, description="Client id; resending it does not duplicate the turn")
    images: list[ImagePayload] = Field(default_factory=list)
    notes: list[NotePayload] = Field(default_factory=list)
    include_prior_conversation: bool | None = None
    stream: bool = False


class ToolInvocationModel(BaseModel):
    id: str
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class ToolResultModel(BaseModel):
    tool_call_id: str
    name: str
    result: Any = None


class TurnModel(BaseModel):
    """A stored conversation turn."""
    id: str
    role: Literal["system", "user", "assistant"]
    content: Any = ""
    timestamp: float
    status: Literal["processing", "completed", "cancelled"]
    attachments: dict[str, Any] | None = None
    tool_calls: list[ToolInvocationModel] | None = None
    tool_results: list[ToolResultModel] | None = None
    citations: list[str] | None = None
    model: str | None = None

    @classmethod
    def from_turn(cls, turn: ConversationTurn) -> "TurnModel":
        return cls.model_validate(turn.to_dict())


class ConversationResponse(BaseModel):
    thread_id: str
    messages: list[TurnModel]


class LoadConversationRequest(BaseModel):
    messages: list[TurnModel]


class CancelResponse(BaseModel):
    thread_id: str
    message_id: str
    cancelled: bool


class HealthResponse(BaseModel):
    """Simple health check response."""
    status: str = "ok"
    version: str = SERVICE_VERSION


class ServiceStatusResponse(BaseModel):
    status: str = "ok"
    version: str = SERVICE_VERSION
    uptime_seconds: float
    active_generations: int
    event_subscribers: int = 0
    available_models: list[str] = []
    default_model: str | None = None
