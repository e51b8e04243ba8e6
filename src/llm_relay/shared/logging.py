"""
Rich-formatted logging for llm-relay.

Three verbosity levels:
- Normal: warnings and errors only
- Verbose (--verbose/-v): one scannable line per turn, model round and tool call
- Debug (--debug): low-level DEBUG messages including adapted payloads

Usage:
    from llm_relay.shared.logging import get_service_logger, setup_logging

    # At startup
    setup_logging(verbose=args.verbose, debug=args.debug)

    # Per module
    log = get_service_logger(__name__)
    log.llm_request("gpt-4o", "openai", turn_count=4)
"""

import json
import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Tracks the request id across awaits within one processing task
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

RELAY_THEME = Theme({
    "api.method": "bold cyan",
    "api.path": "green",
    "model.name": "bold magenta",
    "model.type": "dim magenta",
    "timing": "dim cyan",
    "request_id": "dim yellow",
    "thread.id": "dim blue",
    "tool": "bold yellow",
    "success": "bold green",
    "muted": "dim",
})

ICONS = {
    "request": "📨",
    "model": "🤖",
    "tool": "🔧",
    "cancel": "⏹",
    "success": "✓",
    "error": "✗",
}

_console: Console | None = None


def get_console() -> Console:
    """Get the shared console instance."""
    global _console
    if _console is None:
        _console = Console(theme=RELAY_THEME, stderr=True)
    return _console


_debug = False


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """
    Configure root logging with a Rich handler.

    Args:
        verbose: Show INFO-level flow messages
        debug: Show DEBUG messages and third-party INFO logs
    """
    global _debug
    _debug = debug
    console_level = logging.INFO if (verbose or debug) else logging.WARNING
    root_level = logging.DEBUG if debug else console_level

    logging.basicConfig(
        level=root_level,
        format="%(message)s",
        handlers=[RichHandler(
            console=get_console(),
            show_path=False,
            show_time=True,
            omit_repeated_times=False,
            log_time_format="[%I:%M %p]",
            show_level=False,
            rich_tracebacks=True,
            tracebacks_show_locals=verbose,
            markup=True,
        )],
        force=True,
    )

    noisy_loggers = [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpx",
        "httpcore",
        "asyncio",
        "openai",
        "anthropic",
    ]
    for logger_name in noisy_loggers:
        if logger_name == "uvicorn.access" and not debug:
            logging.getLogger(logger_name).setLevel(logging.ERROR)
        else:
            logging.getLogger(logger_name).setLevel(logging.WARNING if not debug else logging.INFO)


def generate_request_id() -> str:
    """Generate a short request ID for tracing."""
    return uuid4().hex[:8]


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


@dataclass
class RequestContext:
    """Context for tracking a single request."""
    request_id: str
    method: str
    path: str
    thread_id: str | None = None
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_ms(self) -> float:
        return (time.time() - self.start_time) * 1000


class ServiceLogger:
    """Logger with request-id prefixes and relay-specific event helpers."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _prefix(self, msg: str) -> str:
        request_id = get_request_id()
        if request_id:
            return f"[request_id]\\[{request_id}][/request_id] {msg}"
        return msg

    # -------------------------------------------------------------------------
    # Standard logging methods
    # -------------------------------------------------------------------------

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._logger.debug(self._prefix(msg), *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._logger.info(self._prefix(msg), *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._logger.warning(self._prefix(msg), *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._logger.error(self._prefix(msg), *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        self._logger.exception(self._prefix(msg), *args, **kwargs)

    # -------------------------------------------------------------------------
    # Structured relay events
    # -------------------------------------------------------------------------

    def api_request(self, ctx: RequestContext) -> None:
        parts = [
            f"[api.method]{ctx.method}[/api.method]",
            f"[api.path]{ctx.path}[/api.path]",
        ]
        if ctx.thread_id:
            parts.append(f"thread=[thread.id]{ctx.thread_id}[/thread.id]")
        self.info(" ".join(parts))

    def turn_received(self, thread_id: str, content: str, image_count: int = 0, note_count: int = 0) -> None:
        preview = " ".join(content.split())
        if len(preview) > 80:
            preview = preview[:80] + "..."
        extras = []
        if image_count:
            extras.append(f"{image_count} image(s)")
        if note_count:
            extras.append(f"{note_count} note(s)")
        suffix = f" [muted]({', '.join(extras)})[/muted]" if extras else ""
        self.info(f"{ICONS['request']} [thread.id]{thread_id}[/thread.id] \"{preview}\"{suffix}")

    def llm_request(self, model: str, kind: str, turn_count: int, round_number: int = 1,
                    payload: list[dict[str, Any]] | None = None) -> None:
        self.info(
            f"{ICONS['model']} [model.name]{model}[/model.name] [model.type]({kind})[/model.type] "
            f"round {round_number}, {turn_count} turn(s)"
        )
        if _debug and payload is not None:
            self.debug("Adapted turns: %s", json.dumps(payload, ensure_ascii=False, default=str, indent=2))

    def llm_response(self, model: str, elapsed_ms: float, tokens: int, tool_calls: int = 0) -> None:
        msg = (
            f"{ICONS['success']} [model.name]{model}[/model.name] "
            f"[timing]{elapsed_ms:.0f}ms[/timing] [muted]~{tokens} tokens[/muted]"
        )
        if tool_calls:
            msg += f" [tool]{tool_calls} tool call(s)[/tool]"
        self.info(msg)

    def tool_call(self, name: str, parameters: dict[str, Any], success: bool = True,
                  duration_ms: float | None = None) -> None:
        params = json.dumps(parameters, ensure_ascii=False, default=str)
        if len(params) > 120:
            params = params[:120] + "..."
        msg = f"{ICONS['tool']} [tool]{name}[/tool] {params}"
        if duration_ms is not None:
            msg += f" [timing]{duration_ms:.0f}ms[/timing]"
        if success:
            self.info(msg)
        else:
            self.warning(msg + " [FAILED]")

    def cancelled(self, thread_id: str, message_id: str) -> None:
        self.info(f"{ICONS['cancel']} cancelled [thread.id]{thread_id}[/thread.id]/{message_id}")

    def failure(self, kind: str, error: BaseException) -> None:
        self.error(f"{ICONS['error']} {kind}: {error}", exc_info=_debug)


def get_service_logger(name: str) -> ServiceLogger:
    """Get a ServiceLogger instance for the given module name."""
    return ServiceLogger(name)
