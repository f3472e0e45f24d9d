"""
Bridge HTTP Server

FastAPI application exposing the health check and the relay endpoint.
The child process is started and stopped with the application lifespan.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from stdio_bridge import __version__
from stdio_bridge.bridge import StdioBridge
from stdio_bridge.configs.logging import get_logger
from stdio_bridge.configs.runtime import BridgeConfig, load_config
from stdio_bridge.controllers.http.relay import error_response, router as relay_router
from stdio_bridge.exceptions import MethodNotAllowed

logger = get_logger("http")


class HealthResponse(BaseModel):
    """Response for GET /health."""
    ok: bool = True


def create_app(
    config: Optional[BridgeConfig] = None,
    bridge: Optional[StdioBridge] = None,
) -> FastAPI:
    """
    Create the FastAPI app for one bridge.

    Args:
        config: Bridge configuration. Defaults to load_config().
        bridge: Prebuilt bridge. Defaults to a StdioBridge for config.

    Returns:
        FastAPI application whose lifespan owns the child process
    """
    if config is None:
        config = bridge.config if bridge is not None else load_config()
    if bridge is None:
        bridge = StdioBridge(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await bridge.start()
        try:
            yield
        finally:
            await bridge.stop()

    app = FastAPI(
        title="stdio-bridge",
        description="HTTP front end for a stdio JSON-RPC child process",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.bridge = bridge

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        # Methods outside the relay route never reach it
        if exc.status_code == 405:
            return error_response(MethodNotAllowed("Method not allowed"))
        return await http_exception_handler(request, exc)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse()

    # The relay catches every path, so it goes last
    app.include_router(relay_router, tags=["relay"])

    return app


def run_server(config: BridgeConfig) -> None:
    """Run the bridge behind uvicorn until interrupted."""
    import uvicorn

    app = create_app(config)
    logger.info(f"Listening on {config.host}:{config.port}")
    logger.info(f"Command: {config.command_line}")
    uvicorn.run(app, host=config.host, port=config.port, log_level="warning")
