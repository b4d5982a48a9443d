"""
FastAPI Application - HTTP surface of the responder
===================================================

This module creates and configures the FastAPI application that receives
inbound messages from the chat platform bridge and lets operators inspect,
reload and save the configuration.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.exceptions import ResponderError
from core.logging import get_logger
from core.store import ConfigStore
from core.watcher import ConfigWatcher
from services.dispatcher import Dispatcher
from services.renderers import create_renderer

logger = get_logger("web.app")


def create_app(
    store: ConfigStore,
    dispatcher: Optional[Dispatcher] = None,
    watcher: Optional[ConfigWatcher] = None,
    debug: bool = False
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Configuration store shared with the watcher
        dispatcher: Message dispatcher (built from the webhook settings if omitted)
        watcher: Running config watcher, reported by /api/status
        debug: Enable debug mode

    Returns:
        Configured FastAPI application
    """
    if dispatcher is None:
        webhook = store.snapshot().webhook
        dispatcher = Dispatcher(
            store,
            create_renderer(webhook.url, headers=webhook.headers, timeout=webhook.timeout),
        )

    app = FastAPI(
        title="Chat Auto-Responder",
        description="Rule-based automatic replies for chat messages",
        version="1.0.0",
        debug=debug,
    )

    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.watcher = watcher
    app.state.debug = debug

    from .routes import router as main_router
    app.include_router(main_router, prefix="")

    @app.exception_handler(ResponderError)
    async def responder_exception_handler(request: Request, exc: ResponderError):
        logger.error(f"Request failed: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": exc.message, "detail": exc.details if debug else None},
        )

    logger.info("Web application created")

    return app


def run_app(
    store: ConfigStore,
    host: str = "127.0.0.1",
    port: int = 8080,
    debug: bool = False,
    watch: bool = True
) -> None:
    """
    Run the web application server.

    Starts the config watcher (unless disabled) for the lifetime of the
    server.

    Args:
        store: Configuration store
        host: Host address to bind
        port: Port to listen on
        debug: Enable debug mode
        watch: Reload the configuration when its file changes
    """
    import uvicorn

    watcher = None
    watch_config = store.snapshot().watch
    if watch and watch_config.enabled:
        watcher = ConfigWatcher(store, poll_interval=watch_config.poll_interval)
        watcher.start()

    app = create_app(store, watcher=watcher, debug=debug)

    logger.info(f"Starting web server on {host}:{port}")
    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="debug" if debug else "info"
        )
    finally:
        if watcher:
            watcher.stop()
