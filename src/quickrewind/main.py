"""
QuickRewind Main Application
============================

Localhost FastAPI control surface for the capture core.

Tray and hotkey helpers run as separate processes and drive capture through
these endpoints. Binding defaults to 127.0.0.1; nothing here is meant to be
exposed beyond the local machine.

Endpoints:
    GET  /                  - Service information
    GET  /health            - Liveness probe
    GET  /status            - Capture state and last export
    GET  /metrics           - Scheduler counters
    GET  /config            - Current capture settings
    PUT  /config            - Apply new capture settings (rebuilds capture)
    POST /export            - Save the rolling buffer
    POST /recording/start   - Start an active recording
    POST /recording/stop    - Stop the active recording and save it
    GET  /notifications     - Recent notifications
    WS   /ws/notifications  - Real-time notification stream
"""

import asyncio
import logging
import time
from concurrent.futures import Future
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from quickrewind import __version__
from quickrewind.config import CaptureConfig, Settings, settings
from quickrewind.models.export import EncodingResult
from quickrewind.observability import LoggingNotifier, NotificationFeed
from quickrewind.service import QuickRewindService


logger = logging.getLogger(__name__)


ServiceFactory = Callable[[Settings, NotificationFeed], QuickRewindService]

NOTIFICATION_POLL_SECONDS = 0.5


def default_service_factory(app_settings: Settings, feed: NotificationFeed) -> QuickRewindService:
    return QuickRewindService(app_settings.capture, notifier=feed)


async def _await_result(future: "Future[EncodingResult]") -> JSONResponse:
    result = await asyncio.wrap_future(future)
    return JSONResponse(
        result.model_dump(mode="json"),
        status_code=200 if result.succeeded else 500,
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    app_settings: Optional[Settings] = None,
    service_factory: ServiceFactory = default_service_factory,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        app_settings: Settings to run with (defaults to the loaded settings)
        service_factory: Builds the QuickRewindService at startup

    Returns:
        FastAPI application whose lifespan owns the service
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with explicit capture teardown."""
        app.state.started_at = time.time()
        app.state.shutting_down = False
        app.state.feed = NotificationFeed(forward_to=LoggingNotifier())
        app.state.service = service_factory(app_settings, app.state.feed)

        logger.info(f"Starting QuickRewind {__version__}")
        # CaptureUnavailableError propagates: no display means no service.
        app.state.service.start()

        yield

        logger.info("Shutting down gracefully...")
        app.state.shutting_down = True
        await asyncio.to_thread(app.state.service.shutdown)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="QuickRewind",
        description="Retroactive screen capture to GIF",
        version=__version__,
        lifespan=lifespan,
    )

    # =========================================================================
    # HTTP Endpoints
    # =========================================================================

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "QuickRewind",
            "version": __version__,
            "status": "running",
            "output_folder": app.state.service.config.output_folder,
        })

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe - always 200 while the process is up."""
        return JSONResponse({
            "status": "healthy",
            "capturing": app.state.service.scheduler.is_capturing,
            "uptime_seconds": round(time.time() - app.state.started_at, 1),
        })

    @app.get("/status")
    async def status() -> JSONResponse:
        return JSONResponse(app.state.service.status())

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        """Detailed counters for observability."""
        return JSONResponse({
            "uptime_seconds": round(time.time() - app.state.started_at, 1),
            **app.state.service.scheduler.metrics(),
        })

    @app.get("/config")
    async def get_config() -> JSONResponse:
        return JSONResponse(app.state.service.config.model_dump())

    @app.put("/config")
    async def put_config(config: CaptureConfig) -> JSONResponse:
        """Apply new capture settings. Values are clamped, not rejected."""
        await asyncio.to_thread(app.state.service.reconfigure, config)
        return JSONResponse(app.state.service.config.model_dump())

    @app.post("/export")
    async def export_buffer() -> JSONResponse:
        """Save the rolling buffer and wait for the result."""
        future = app.state.service.export_buffer()
        if future is None:
            return JSONResponse(
                {"error": "No frames available in buffer"},
                status_code=409,
            )
        return await _await_result(future)

    @app.post("/recording/start")
    async def start_recording() -> JSONResponse:
        service: QuickRewindService = app.state.service
        if not await asyncio.to_thread(service.start_recording):
            return JSONResponse(
                {"error": "Recording could not be started", "active_recording": service.scheduler.is_active_recording},
                status_code=409,
            )
        return JSONResponse({"status": "recording"})

    @app.post("/recording/stop")
    async def stop_recording() -> JSONResponse:
        """Stop the active recording, save it and wait for the result."""
        future = await asyncio.to_thread(app.state.service.stop_recording)
        if future is None:
            return JSONResponse(
                {"error": "No active recording to save"},
                status_code=409,
            )
        return await _await_result(future)

    @app.get("/notifications")
    async def notifications(after: int = -1, limit: Optional[int] = None) -> JSONResponse:
        items = app.state.feed.recent(after=after, limit=limit)
        return JSONResponse([n.model_dump(mode="json") for n in items])

    # =========================================================================
    # WebSocket Endpoints
    # =========================================================================

    @app.websocket("/ws/notifications")
    async def notification_stream(websocket: WebSocket) -> None:
        """Push each new notification as JSON."""
        await websocket.accept()
        logger.info("Client connected to /ws/notifications")

        last_seen = app.state.feed.last_id
        try:
            while not app.state.shutting_down:
                for note in app.state.feed.recent(after=last_seen):
                    await websocket.send_json(note.model_dump(mode="json"))
                    last_seen = note.id
                await asyncio.sleep(NOTIFICATION_POLL_SECONDS)
        except WebSocketDisconnect:
            pass
        finally:
            logger.info("Client disconnected from /ws/notifications")

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    import uvicorn

    uvicorn.run(
        "quickrewind.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
