"""Error taxonomy and user-facing failure messages.

Provider failures are classified by matching known substrings in the error
message first, then by exception type. Tool-level kinds never abort a
session; they are recorded as result entries fed back to the model.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum

import httpx
import openai


class RelayError(Exception):
    """Base class for errors raised by llm-relay itself."""


class ProviderConfigError(RelayError):
    """A model alias or provider definition cannot be used."""


class ToolExecutionError(RelayError):
    """A tool raised or does not exist."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class MalformedToolArgsError(RelayError):
    """Tool-call arguments did not parse into an object."""

    def __init__(self, tool_name: str, raw_arguments: str, reason: str):
        super().__init__(f"Malformed arguments for tool '{tool_name}': {reason}")
        self.tool_name = tool_name
        self.raw_arguments = raw_arguments


class ErrorKind(str, Enum):
    QUOTA_EXHAUSTED = "quota_exhausted"
    RATE_LIMITED = "rate_limited"
    AUTH_INVALID = "auth_invalid"
    MODEL_UNAVAILABLE = "model_unavailable"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    TOOL_EXECUTION_ERROR = "tool_execution_error"
    MALFORMED_TOOL_ARGS = "malformed_tool_args"
    STREAM_ABORTED = "stream_aborted"
    UNKNOWN_PROVIDER_ERROR = "unknown_provider_error"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.QUOTA_EXHAUSTED: (
        "💳 **API Credits Exhausted**\n\nYour API credits have run out. Please:\n"
        "- Check your billing dashboard\n"
        "- Add more credits or upgrade your plan\n"
        "- Switch to a different model if available"
    ),
    ErrorKind.RATE_LIMITED: (
        "⏱️ **Rate Limit Reached**\n\nToo many requests sent. Please wait a moment before trying again."
    ),
    ErrorKind.AUTH_INVALID: (
        "🔐 **Authentication Error**\n\nAPI key may be invalid or expired. Please check your API configuration."
    ),
    ErrorKind.MODEL_UNAVAILABLE: (
        "🤖 **Model Not Available**\n\nThe requested AI model is not available. Please try a different model."
    ),
    ErrorKind.TIMEOUT: (
        "⏰ **Request Timeout**\n\nThe request took too long to complete. Please try again."
    ),
    ErrorKind.NETWORK_ERROR: (
        "🌐 **Network Error**\n\nConnection problem occurred. Please check your internet connection and try again."
    ),
}

UNKNOWN_ERROR_TEMPLATE = (
    "❌ **Error Occurred**\n\nSomething went wrong: {message}\n\nPlease try again or check your settings."
)

# Checked in order; the first matching group wins.
_SUBSTRING_RULES: list[tuple[ErrorKind, tuple[str, ...]]] = [
    (ErrorKind.QUOTA_EXHAUSTED, ("credit balance is too low", "insufficient_quota", "exceeded your current quota")),
    (ErrorKind.RATE_LIMITED, ("rate limit", "rate_limit", "too many requests")),
    (ErrorKind.AUTH_INVALID, ("unauthorized", "authentication", "invalid api key", "invalid_api_key")),
    (ErrorKind.MODEL_UNAVAILABLE, ("model not found", "model_not_found")),
    (ErrorKind.TIMEOUT, ("timeout", "timed out")),
    (ErrorKind.NETWORK_ERROR, ("network", "connection")),
]

# APITimeoutError subclasses APIConnectionError, so timeouts come first.
_TYPE_RULES: list[tuple[ErrorKind, tuple[type[BaseException], ...]]] = [
    (ErrorKind.RATE_LIMITED, (openai.RateLimitError,)),
    (ErrorKind.AUTH_INVALID, (openai.AuthenticationError, openai.PermissionDeniedError)),
    (ErrorKind.MODEL_UNAVAILABLE, (openai.NotFoundError,)),
    (ErrorKind.TIMEOUT, (openai.APITimeoutError, httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)),
    (ErrorKind.NETWORK_ERROR, (openai.APIConnectionError, httpx.NetworkError, ConnectionError)),
]


@dataclass(frozen=True)
class ErrorClassification:
    kind: ErrorKind
    message: str
    detail: str


def error_text(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def classify_error(error: BaseException) -> ErrorClassification:
    """Map a provider failure onto an ErrorKind and its user-facing message."""
    detail = error_text(error)
    lowered = detail.lower()

    for kind, needles in _SUBSTRING_RULES:
        if any(needle in lowered for needle in needles):
            return ErrorClassification(kind, ERROR_MESSAGES[kind], detail)

    for kind, types in _TYPE_RULES:
        if isinstance(error, types):
            return ErrorClassification(kind, ERROR_MESSAGES[kind], detail)

    return ErrorClassification(
        ErrorKind.UNKNOWN_PROVIDER_ERROR,
        UNKNOWN_ERROR_TEMPLATE.format(message=detail),
        detail,
    )
