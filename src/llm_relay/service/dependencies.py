"""Shared FastAPI dependencies."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core import RelayService

_service: "RelayService | None" = None


def set_service(service: "RelayService | None") -> None:
    """Set the global relay service instance."""
    global _service
    _service = service


def get_service() -> "RelayService":
    """Get the initialized relay service instance."""
    if _service is None:
        raise RuntimeError("Service not initialized")
    return _service
