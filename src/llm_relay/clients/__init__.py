from .base import ModelHandle, StreamChunk, ToolCallChunk
from .factory import create_model_handle, profile_for

__all__ = ["ModelHandle", "StreamChunk", "ToolCallChunk", "create_model_handle", "profile_for"]
