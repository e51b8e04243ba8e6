"""Tests for settings and models.yaml loading."""

from __future__ import annotations

import pytest

from llm_relay.core.errors import ProviderConfigError
from llm_relay.utils.config import Config, ModelDefinition

MODELS_YAML = """
models:
  gpt:
    type: openai
    model_id: gpt-4o-mini
    display_name: GPT-4o mini
  sonar:
    type: perplexity
    model_id: sonar-pro
    base_url: https://api.perplexity.ai
    api_key_env: TEST_PPLX_KEY
  webapp:
    model_id: qwen2.5
    base_url: /api/llm/v1
  broken:
    type: carrier-pigeon
    model_id: coo
"""


@pytest.fixture
def config(tmp_path, monkeypatch) -> Config:
    monkeypatch.delenv("LLM_RELAY_DEFAULT_MODEL_ALIAS", raising=False)
    path = tmp_path / "models.yaml"
    path.write_text(MODELS_YAML, encoding="utf-8")
    return Config(MODELS_CONFIG_PATH=str(path), DEFAULT_MODEL_ALIAS="gpt")


def test_aliases_loaded(config: Config) -> None:
    assert config.get_model_options() == ["broken", "gpt", "sonar", "webapp"]


def test_default_alias_used_when_none_given(config: Config) -> None:
    definition = config.get_model()
    assert definition.alias == "gpt"
    assert definition.label == "GPT-4o mini"


def test_unknown_alias_raises(config: Config) -> None:
    with pytest.raises(ProviderConfigError, match="Unknown model alias 'nope'"):
        config.get_model("nope")


def test_unsupported_type_raises(config: Config) -> None:
    with pytest.raises(ProviderConfigError, match="unsupported type"):
        config.get_model("broken")


def test_api_key_from_env(config: Config, monkeypatch) -> None:
    monkeypatch.setenv("TEST_PPLX_KEY", "secret")
    assert config.get_model("sonar").resolved_api_key() == "secret"


def test_relative_base_url_pinned_to_local_origin(config: Config) -> None:
    assert config.get_model("webapp").resolved_base_url() == "http://localhost:3001/api/llm/v1"


def test_missing_file_yields_no_aliases(tmp_path) -> None:
    config = Config(MODELS_CONFIG_PATH=str(tmp_path / "absent.yaml"))
    assert config.get_model_options() == []
    with pytest.raises(ProviderConfigError):
        config.get_model("anything")


def test_register_model_at_runtime(tmp_path) -> None:
    config = Config(MODELS_CONFIG_PATH=str(tmp_path / "absent.yaml"))
    config.register_model(ModelDefinition(alias="local", type="vllm", model_id="llama", base_url="http://gpu:8000/v1"))

    definition = config.get_model("local")
    assert definition.type == "vllm"
    assert definition.base_url == "http://gpu:8000/v1"


def test_env_prefix(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("LLM_RELAY_TEMPERATURE", "0.2")
    monkeypatch.setenv("LLM_RELAY_PROGRESS_TOPIC", "custom-topic")
    config = Config(MODELS_CONFIG_PATH=str(tmp_path / "absent.yaml"))
    assert config.TEMPERATURE == 0.2
    assert config.PROGRESS_TOPIC == "custom-topic"
