"""Route router collection for app registration."""

from .events import router as events_router
from .health import router as health_router
from .messages import router as messages_router

all_routers = [
    health_router,
    messages_router,
    events_router,
]

__all__ = ["all_routers"]
