from .content import AdaptedTurn, extract_text, stringify_content
from .turn import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    Attachments,
    ConversationTurn,
    ImageAttachment,
    NotesAttachment,
    ToolInvocation,
    ToolResult,
    TurnStatus,
    generate_message_id,
)

__all__ = [
    "ROLE_ASSISTANT",
    "ROLE_SYSTEM",
    "ROLE_USER",
    "AdaptedTurn",
    "Attachments",
    "ConversationTurn",
    "ImageAttachment",
    "NotesAttachment",
    "ToolInvocation",
    "ToolResult",
    "TurnStatus",
    "extract_text",
    "generate_message_id",
    "stringify_content",
]
