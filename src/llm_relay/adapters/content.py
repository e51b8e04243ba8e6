"""Multi-modal content blocks for user turns."""

import logging
import re
from typing import Any

from ..models.content import extract_text, stringify_content
from ..models.turn import ConversationTurn, ImageAttachment
from ..providers.profile import ImageContentShape, ProviderProfile

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:([^;,]+);base64,(.*)$", re.DOTALL)


def split_data_uri(data: str, fallback_mime: str = DEFAULT_IMAGE_MIME) -> tuple[str, str]:
    """Return ``(media_type, base64_payload)`` for a data URI or bare payload."""
    match = _DATA_URI_RE.match(data)
    if match:
        return match.group(1), match.group(2)
    return fallback_mime, data


def to_data_uri(data: str, mime_type: str = DEFAULT_IMAGE_MIME) -> str:
    if data.startswith("data:"):
        return data
    return f"data:{mime_type};base64,{data}"


def image_block(image: ImageAttachment, shape: ImageContentShape) -> dict[str, Any] | None:
    """Build one image block, or None when the attachment carries no data."""
    data = image.data
    if not data:
        logger.warning("Image missing both full_image and thumbnail data; dropping it")
        return None

    mime_type = image.mime_type or DEFAULT_IMAGE_MIME

    if shape == ImageContentShape.ANTHROPIC_BASE64:
        media_type, payload = split_data_uri(data, mime_type)
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": payload},
        }
    if shape == ImageContentShape.IMAGE_URL_STRING:
        return {"type": "image_url", "image_url": to_data_uri(data, mime_type)}
    if shape == ImageContentShape.IMAGE_URL_RAW:
        return {"type": "image_url", "image_url": {"url": data}}
    return {"type": "image_url", "image_url": {"url": to_data_uri(data, mime_type)}}


def turn_text(content: Any) -> str:
    """Plain text of stored content; structured blocks contribute their text."""
    if isinstance(content, str):
        return content
    if content is None:
        return ""
    return extract_text(content) or stringify_content(content)


def build_user_content(turn: ConversationTurn, profile: ProviderProfile) -> str | list[dict[str, Any]]:
    """Shape a user turn's text, notes and images for ``profile``."""
    text = turn_text(turn.content)
    notes_text = "".join(note.render() for note in turn.notes)

    if not turn.images:
        return text + notes_text

    if not profile.supports_multimodal:
        logger.warning(
            f"Provider '{profile.kind.value}' does not accept images; "
            f"dropping {len(turn.images)} attachment(s)"
        )
        return text + notes_text

    image_blocks = [block for block in (image_block(img, profile.image_content_shape) for img in turn.images) if block]
    if not image_blocks:
        return text + notes_text

    blocks: list[dict[str, Any]] = []
    if text:
        blocks.append({"type": "text", "text": text})
    blocks.extend(image_blocks)

    if notes_text:
        _attach_notes(blocks, notes_text)
    return blocks


def _attach_notes(blocks: list[dict[str, Any]], notes_text: str) -> None:
    for block in blocks:
        if block.get("type") == "text":
            block["text"] = extract_text(block) + notes_text
            return
    blocks.insert(0, {"type": "text", "text": notes_text})
