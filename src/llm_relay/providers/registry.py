import logging

from .profile import PROFILES, ProviderKind, ProviderProfile

logger = logging.getLogger(__name__)

_PROFILES: dict[ProviderKind, ProviderProfile] = dict(PROFILES)

# Types that say nothing about the wire shape; heuristics decide for these.
_GENERIC_TYPES = {None, "", ProviderKind.OPENAI_COMPATIBLE.value}


def register_profile(profile: ProviderProfile) -> None:
    """Register (or replace) the profile used for a provider kind."""
    _PROFILES[profile.kind] = profile


def get_profile(kind: ProviderKind) -> ProviderProfile:
    return _PROFILES[kind]


def resolve_profile(base_url: str | None = None, model: str | None = None,
                    provider_type: str | None = None) -> ProviderProfile:
    """Resolve a ``{base_url, model, type}`` triple to a ProviderProfile.

    Priority:
    1. A specific provider type (anything but empty or 'openai-compatible')
    2. Auto-detection from the base URL and model name
    3. The generic OpenAI-compatible profile
    """
    if provider_type not in _GENERIC_TYPES:
        try:
            kind = ProviderKind(provider_type)
        except ValueError:
            logger.warning(f"Unknown provider type '{provider_type}', falling back to detection")
        else:
            return _PROFILES[kind]

    detected = _auto_detect_kind(base_url or "", model or "")
    if detected:
        logger.debug(f"Auto-detected provider '{detected.value}' for model '{model}'")
        return _PROFILES[detected]

    return _PROFILES[ProviderKind.OPENAI_COMPATIBLE]


def _auto_detect_kind(base_url: str, model: str) -> ProviderKind | None:
    """Auto-detect the provider from URL and model name patterns."""
    url_lower = base_url.lower()
    model_lower = model.lower()

    if "anthropic" in url_lower or "claude" in model_lower:
        return ProviderKind.ANTHROPIC
    if "perplexity" in url_lower or "sonar" in model_lower:
        return ProviderKind.PERPLEXITY
    if "generativelanguage" in url_lower or "gemini" in model_lower:
        return ProviderKind.GOOGLE
    if "ollama" in url_lower:
        return ProviderKind.OLLAMA

    return None
