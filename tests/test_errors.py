"""Tests for provider error classification."""

from __future__ import annotations

import asyncio

import httpx
import openai
import pytest

from llm_relay.core.errors import (
    ERROR_MESSAGES,
    ErrorKind,
    MalformedToolArgsError,
    ToolExecutionError,
    classify_error,
)


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", "https://api.example/v1/chat/completions"))


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Your credit balance is too low to access the API", ErrorKind.QUOTA_EXHAUSTED),
        ("Error code: 429 - insufficient_quota", ErrorKind.QUOTA_EXHAUSTED),
        ("Rate limit reached for requests", ErrorKind.RATE_LIMITED),
        ("429 Too Many Requests", ErrorKind.RATE_LIMITED),
        ("401 Unauthorized", ErrorKind.AUTH_INVALID),
        ("Invalid API key provided", ErrorKind.AUTH_INVALID),
        ("The model `gpt-9` does not exist: model_not_found", ErrorKind.MODEL_UNAVAILABLE),
        ("Request timed out", ErrorKind.TIMEOUT),
        ("Connection reset by peer", ErrorKind.NETWORK_ERROR),
    ],
)
def test_substring_rules(message: str, kind: ErrorKind) -> None:
    result = classify_error(RuntimeError(message))
    assert result.kind == kind
    assert result.message == ERROR_MESSAGES[kind]
    assert result.detail == message


def test_quota_wins_over_rate_limit() -> None:
    error = RuntimeError("rate_limit_error: You exceeded your current quota")
    assert classify_error(error).kind == ErrorKind.QUOTA_EXHAUSTED


def test_openai_status_errors_by_type() -> None:
    rate = openai.RateLimitError("slow down please", response=_response(429), body=None)
    auth = openai.AuthenticationError("bad key", response=_response(401), body=None)
    missing = openai.NotFoundError("no such thing", response=_response(404), body=None)

    assert classify_error(rate).kind == ErrorKind.RATE_LIMITED
    assert classify_error(auth).kind == ErrorKind.AUTH_INVALID
    assert classify_error(missing).kind == ErrorKind.MODEL_UNAVAILABLE


def test_transport_errors_by_type() -> None:
    request = httpx.Request("GET", "https://api.example")
    assert classify_error(httpx.ReadTimeout("", request=request)).kind == ErrorKind.TIMEOUT
    assert classify_error(asyncio.TimeoutError()).kind == ErrorKind.TIMEOUT
    assert classify_error(openai.APITimeoutError(request=request)).kind == ErrorKind.TIMEOUT
    assert classify_error(httpx.ConnectError("", request=request)).kind == ErrorKind.NETWORK_ERROR


def test_unknown_error_includes_raw_message() -> None:
    result = classify_error(ValueError("something odd"))
    assert result.kind == ErrorKind.UNKNOWN_PROVIDER_ERROR
    assert "Something went wrong: something odd" in result.message


def test_empty_message_uses_class_name() -> None:
    result = classify_error(KeyError())
    assert result.detail == "KeyError"


def test_tool_errors_carry_tool_name() -> None:
    error = MalformedToolArgsError("search", '{"q": ', "Expecting value")
    assert error.tool_name == "search"
    assert error.raw_arguments == '{"q": '
    assert str(error) == "Malformed arguments for tool 'search': Expecting value"
    assert ToolExecutionError("bash", "Unknown tool: bash").tool_name == "bash"
