from .profile import ImageContentShape, ProviderKind, ProviderProfile
from .registry import get_profile, register_profile, resolve_profile

__all__ = [
    "ImageContentShape",
    "ProviderKind",
    "ProviderProfile",
    "get_profile",
    "register_profile",
    "resolve_profile",
]
