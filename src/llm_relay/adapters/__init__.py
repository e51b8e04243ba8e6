from .alternation import merge_same_role, normalize_alternation
from .content import build_user_content, image_block
from .message_adapter import adapt, drop_empty_turns

__all__ = [
    "adapt",
    "build_user_content",
    "drop_empty_turns",
    "image_block",
    "merge_same_role",
    "normalize_alternation",
]
