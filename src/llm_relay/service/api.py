"""
FastAPI service for llm-relay.

Provides:
- Thread message endpoints (JSON or server-sent events)
- Cancellation of in-flight assistant turns
- A progress event stream shared by all threads
- Health and status endpoints

Run with: llm-relay-service
Or: uvicorn llm_relay.service.server:app --host 127.0.0.1 --port 8642
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..shared.logging import get_service_logger, setup_logging
from ..utils.config import Config
from .core import RelayService
from .dependencies import get_service, set_service
from .routes import all_routers
from .schemas import SERVICE_VERSION

log = get_service_logger(__name__)


def create_app(service: RelayService | None = None) -> FastAPI:
    """Build the app; a prebuilt ``service`` skips config loading at startup."""

    @asynccontextmanager
    async def lifespan(app):
        relay = service or RelayService(Config())
        set_service(relay)
        log.info(
            f"llm-relay v{SERVICE_VERSION} ready "
            f"({len(relay.config.get_model_options())} model alias(es), "
            f"default={relay.config.DEFAULT_MODEL_ALIAS})"
        )
        yield
        log.info("Service shutting down")
        await get_service().shutdown()
        set_service(None)

    app = FastAPI(
        title="llm-relay API",
        description="Provider-agnostic conversational backend with streaming and tool continuation",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    for router in all_routers:
        app.include_router(router)
    return app


app = create_app()


def main():
    """Entry point for the relay service."""
    import argparse

    import uvicorn

    config = Config()

    parser = argparse.ArgumentParser(description="llm-relay service")
    parser.add_argument("--host", default=config.SERVICE_HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.SERVICE_PORT, help="Port to listen on")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show one line per turn, model round and tool call")
    parser.add_argument("--debug", action="store_true", help="Enable low-level DEBUG messages")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev mode)")
    args = parser.parse_args()

    setup_logging(verbose=args.verbose or config.VERBOSE, debug=args.debug or config.DEBUG)

    uvicorn.run(
        "llm_relay.service.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if args.debug else "warning",
    )
    return 0


if __name__ == "__main__":
    main()
