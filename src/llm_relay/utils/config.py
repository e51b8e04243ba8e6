import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.errors import ProviderConfigError

DEFAULT_SYSTEM_MESSAGE = "You are a helpful AI assistant."

PROVIDER_OPENAI = "openai"
PROVIDER_OPENAI_COMPATIBLE = "openai-compatible"
PROVIDER_VLLM = "vllm"
PROVIDER_OLLAMA = "ollama"
PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_PERPLEXITY = "perplexity"
PROVIDER_GOOGLE = "google"
PROVIDER_LOCAL = "local"

KNOWN_PROVIDERS = (
    PROVIDER_OPENAI,
    PROVIDER_OPENAI_COMPATIBLE,
    PROVIDER_VLLM,
    PROVIDER_OLLAMA,
    PROVIDER_ANTHROPIC,
    PROVIDER_PERPLEXITY,
    PROVIDER_GOOGLE,
    PROVIDER_LOCAL,
)

# Relative base URLs on compatible endpoints are served by the local web app
LOCAL_API_ORIGIN = "http://localhost:3001"

logger = logging.getLogger(__name__)


def get_default_config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(xdg_config_home) / "llm-relay"


def get_default_models_yaml_path() -> Path:
    env_path = os.environ.get("LLM_RELAY_MODELS_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return get_default_config_dir() / "models.yaml"


class ModelDefinition(BaseModel):
    """One alias entry from models.yaml."""

    alias: str
    type: str = PROVIDER_OPENAI_COMPATIBLE
    model_id: str = ""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    display_name: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model_path: Optional[str] = None
    context_window: Optional[int] = None

    @property
    def label(self) -> str:
        return self.display_name or self.model_id or self.alias

    def resolved_base_url(self) -> Optional[str]:
        """Base URL with relative '/api/' paths pinned to the local origin."""
        if self.base_url and self.base_url.startswith("/api/"):
            return f"{LOCAL_API_ORIGIN}{self.base_url}"
        return self.base_url

    def resolved_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


class Config(BaseSettings):
    MODELS_CONFIG_PATH: str = Field(default_factory=lambda: str(get_default_models_yaml_path()),
                                    description="Path to the models YAML definition file")
    DEFAULT_MODEL_ALIAS: Optional[str] = Field(default=None, description="Alias from models.yaml used when a request names no model")
    SYSTEM_MESSAGE: str = Field(default=DEFAULT_SYSTEM_MESSAGE)

    # --- Generation defaults --- #
    TEMPERATURE: float = Field(default=0.7)
    MAX_TOKENS: int = Field(default=4000)
    REQUEST_TIMEOUT: float = Field(default=120.0, description="Seconds before a provider request times out")
    INCLUDE_PRIOR_CONVERSATION: bool = Field(default=True, description="Send the whole thread rather than only the latest user turn")

    # --- Progress publishing --- #
    PROGRESS_TOPIC: str = Field(default="unified-events")
    PUBLISHER_QUEUE_SIZE: int = Field(default=256, description="Per-subscriber event queue bound")
    RATE_SAMPLE_INTERVAL: float = Field(default=1.0, description="Minimum seconds between tokens/second samples")

    # --- Service --- #
    SERVICE_HOST: str = Field(default="127.0.0.1")
    SERVICE_PORT: int = Field(default=8642)

    VERBOSE: bool = Field(default=False)
    DEBUG: bool = Field(default=False)

    defined_models: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="LLM_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **values: Any):
        if "MODELS_CONFIG_PATH" in values:
            values["MODELS_CONFIG_PATH"] = str(Path(values["MODELS_CONFIG_PATH"]).expanduser().resolve())
        super().__init__(**values)
        self._load_models_config()

    def _load_models_config(self) -> None:
        config_path = Path(self.MODELS_CONFIG_PATH)
        if not config_path.is_file():
            logger.warning("Models configuration file not found at %s; no aliases defined", config_path)
            self.defined_models = {"models": {}}
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error("Error parsing YAML file %s: %s", config_path, e)
            self.defined_models = {"models": {}}
            return

        if not isinstance(loaded_data.get("models"), dict):
            logger.warning("Invalid format in %s: missing top-level 'models' mapping", config_path)
            self.defined_models = {"models": {}}
            return
        self.defined_models = loaded_data

    def get_model_options(self) -> List[str]:
        return sorted(self.defined_models.get("models", {}).keys())

    def get_model(self, alias: Optional[str] = None) -> ModelDefinition:
        """Resolve an alias (or the default alias) into a ModelDefinition."""
        alias = alias or self.DEFAULT_MODEL_ALIAS
        if not alias:
            raise ProviderConfigError("No model alias given and LLM_RELAY_DEFAULT_MODEL_ALIAS is not set")

        model_info = self.defined_models.get("models", {}).get(alias)
        if model_info is None:
            raise ProviderConfigError(f"Unknown model alias '{alias}'")

        try:
            definition = ModelDefinition(alias=alias, **model_info)
        except ValidationError as e:
            raise ProviderConfigError(f"Invalid definition for model alias '{alias}': {e}") from e

        if definition.type not in KNOWN_PROVIDERS:
            raise ProviderConfigError(f"Model alias '{alias}' has unsupported type '{definition.type}'")
        return definition

    def register_model(self, definition: ModelDefinition) -> None:
        """Add or replace an alias at runtime."""
        models = self.defined_models.setdefault("models", {})
        models[definition.alias] = definition.model_dump(exclude={"alias"}, exclude_none=True)
