"""Tests for provider profile resolution."""

from __future__ import annotations

import pytest

from llm_relay.clients.factory import profile_for
from llm_relay.providers import ProviderKind, ProviderProfile, get_profile, register_profile, resolve_profile
from llm_relay.providers.profile import PROFILES
from llm_relay.utils.config import ModelDefinition


@pytest.mark.parametrize(
    "base_url, model, expected",
    [
        ("https://api.anthropic.com/v1", "some-model", ProviderKind.ANTHROPIC),
        (None, "claude-3-5-sonnet", ProviderKind.ANTHROPIC),
        ("https://api.perplexity.ai", "llama-3", ProviderKind.PERPLEXITY),
        (None, "sonar-pro", ProviderKind.PERPLEXITY),
        ("https://generativelanguage.googleapis.com/v1beta/openai/", "x", ProviderKind.GOOGLE),
        (None, "gemini-1.5-pro", ProviderKind.GOOGLE),
        ("http://ollama.lan:11434/v1", "llava", ProviderKind.OLLAMA),
        ("http://localhost:8000/v1", "mistral-7b", ProviderKind.OPENAI_COMPATIBLE),
        (None, None, ProviderKind.OPENAI_COMPATIBLE),
    ],
)
def test_auto_detection(base_url, model, expected) -> None:
    assert resolve_profile(base_url, model).kind == expected


def test_generic_type_still_runs_detection() -> None:
    assert resolve_profile(None, "claude-3-haiku", "openai-compatible").kind == ProviderKind.ANTHROPIC


def test_specific_type_beats_heuristics() -> None:
    profile = resolve_profile("https://proxy.example/anthropic", "claude-3-haiku", "openai")
    assert profile.kind == ProviderKind.OPENAI


def test_unknown_type_falls_back_to_detection() -> None:
    assert resolve_profile(None, "sonar", "mystery").kind == ProviderKind.PERPLEXITY


def test_detection_is_case_insensitive() -> None:
    assert resolve_profile("HTTPS://API.PERPLEXITY.AI", "X").kind == ProviderKind.PERPLEXITY


def test_only_perplexity_requires_strict_alternation() -> None:
    strict = {kind for kind, profile in PROFILES.items() if profile.requires_strict_alternation}
    assert strict == {ProviderKind.PERPLEXITY}


def test_register_profile_replaces_existing() -> None:
    original = get_profile(ProviderKind.VLLM)
    try:
        register_profile(ProviderProfile(ProviderKind.VLLM, supports_multimodal=False))
        assert resolve_profile(provider_type="vllm").supports_multimodal is False
    finally:
        register_profile(original)


def test_profile_for_uses_model_definition() -> None:
    definition = ModelDefinition(alias="pplx", model_id="sonar", base_url="https://api.perplexity.ai")
    assert profile_for(definition).requires_strict_alternation is True
