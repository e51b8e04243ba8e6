import logging

from ..providers.profile import ProviderKind, ProviderProfile
from ..providers.registry import resolve_profile
from ..utils.config import Config, ModelDefinition
from .base import ModelHandle

logger = logging.getLogger(__name__)


def profile_for(definition: ModelDefinition) -> ProviderProfile:
    return resolve_profile(definition.resolved_base_url(), definition.model_id, definition.type)


def create_model_handle(definition: ModelDefinition, config: Config) -> ModelHandle:
    """Build the model handle for a configured alias.

    Per-alias temperature and max_tokens override the global defaults.
    """
    profile = profile_for(definition)
    temperature = definition.temperature if definition.temperature is not None else config.TEMPERATURE
    max_tokens = definition.max_tokens or config.MAX_TOKENS

    logger.debug(f"Creating {profile.kind.value} handle for '{definition.alias}' ({definition.model_id})")

    if profile.kind == ProviderKind.ANTHROPIC:
        from .anthropic_client import AnthropicModelHandle
        return AnthropicModelHandle(definition, profile, temperature, max_tokens, timeout=config.REQUEST_TIMEOUT)

    if profile.kind == ProviderKind.LOCAL:
        from .local_client import LocalModelHandle
        return LocalModelHandle(definition, profile, temperature, max_tokens)

    from .openai_client import OpenAIModelHandle
    return OpenAIModelHandle(definition, profile, temperature, max_tokens, timeout=config.REQUEST_TIMEOUT)
