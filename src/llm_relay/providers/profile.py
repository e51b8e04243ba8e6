"""Static per-provider descriptors.

Each back-end is a plain ``ProviderProfile`` value; the message adapter
branches on its fields rather than on client classes.
"""

from dataclasses import dataclass
from enum import Enum


class ProviderKind(str, Enum):
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai-compatible"
    VLLM = "vllm"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"
    PERPLEXITY = "perplexity"
    GOOGLE = "google"
    LOCAL = "local"


class ImageContentShape(str, Enum):
    """Wire shape of one image content block."""

    # {"type": "image", "source": {"type": "base64", "media_type": ..., "data": ...}}
    ANTHROPIC_BASE64 = "anthropic_base64"
    # {"type": "image_url", "image_url": {"url": "data:<mime>;base64,..."}}
    IMAGE_URL_OBJECT = "image_url_object"
    # {"type": "image_url", "image_url": {"url": <data as stored>}}
    IMAGE_URL_RAW = "image_url_raw"
    # {"type": "image_url", "image_url": "data:<mime>;base64,..."}
    IMAGE_URL_STRING = "image_url_string"


@dataclass(frozen=True)
class ProviderProfile:
    kind: ProviderKind
    requires_strict_alternation: bool = False
    supports_multimodal: bool = True
    image_content_shape: ImageContentShape = ImageContentShape.IMAGE_URL_OBJECT
    tool_binding_supported: bool = True


PROFILES: dict[ProviderKind, ProviderProfile] = {
    ProviderKind.OPENAI: ProviderProfile(ProviderKind.OPENAI),
    ProviderKind.OPENAI_COMPATIBLE: ProviderProfile(ProviderKind.OPENAI_COMPATIBLE),
    ProviderKind.VLLM: ProviderProfile(ProviderKind.VLLM),
    ProviderKind.OLLAMA: ProviderProfile(
        ProviderKind.OLLAMA,
        image_content_shape=ImageContentShape.IMAGE_URL_STRING,
        tool_binding_supported=False,
    ),
    ProviderKind.ANTHROPIC: ProviderProfile(
        ProviderKind.ANTHROPIC,
        image_content_shape=ImageContentShape.ANTHROPIC_BASE64,
    ),
    ProviderKind.PERPLEXITY: ProviderProfile(
        ProviderKind.PERPLEXITY,
        requires_strict_alternation=True,
        tool_binding_supported=False,
    ),
    ProviderKind.GOOGLE: ProviderProfile(
        ProviderKind.GOOGLE,
        image_content_shape=ImageContentShape.IMAGE_URL_RAW,
    ),
    ProviderKind.LOCAL: ProviderProfile(
        ProviderKind.LOCAL,
        supports_multimodal=False,
        tool_binding_supported=False,
    ),
}
