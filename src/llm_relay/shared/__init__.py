"""Shared utilities used across llm-relay components."""

from .logging import (
    RequestContext,
    ServiceLogger,
    generate_request_id,
    get_request_id,
    get_service_logger,
    set_request_id,
    setup_logging,
)

__all__ = [
    "RequestContext",
    "ServiceLogger",
    "generate_request_id",
    "get_request_id",
    "get_service_logger",
    "set_request_id",
    "setup_logging",
]
