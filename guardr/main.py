"""
Server entry point: FastAPI app setup and route configuration.
Sets up the FastAPI server with CORS and the command and learning APIs.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator

import dotenv
import fastapi
import uvicorn
from fastapi.middleware import cors

from guardr import __version__, config
from guardr.browser import session as session_mod
from guardr.learning import engine as engine_mod
from guardr.learning import store as store_mod
from guardr.models import commands
from guardr.pipeline import controller as controller_mod
from guardr.routes import commands as command_routes
from guardr.utils import logger

dotenv.load_dotenv()

log = logger.create_logger("Server")


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncGenerator[None, None]:
    """Wire the learning engine, browser and page controller."""
    settings = config.get_settings()
    log.section("Guardr Server Started")
    log.info("Environment", {"env": "production" if settings.is_production else "development", "version": __version__})

    learning = engine_mod.LearningEngine(store_mod.PatternStore(settings.store_dir))
    learning.clean_expired()
    browser = session_mod.BrowserSession(headless=settings.headless)
    app.state.controller = controller_mod.PageController(learning, settings, browser)
    try:
        yield
    finally:
        await app.state.controller.close()
        await browser.close()
        log.info("Server stopped")


app = fastapi.FastAPI(title="Guardr Consent Server", version=__version__, lifespan=lifespan)

# ============================================================================
# Middleware
# ============================================================================

app.add_middleware(
    cors.CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller(request: fastapi.Request) -> controller_mod.PageController:
    """The page controller created at startup."""
    return request.app.state.controller


# ============================================================================
# API Routes
# ============================================================================


@app.post("/api/command")
async def command_endpoint(
    body: commands.CommandRequest,
    controller: controller_mod.PageController = fastapi.Depends(get_controller),
) -> dict[str, object]:
    """Run one command against the controlled page."""
    response = await command_routes.dispatch(controller, body)
    return response.to_wire()


@app.get("/api/ping")
async def ping_endpoint() -> dict[str, object]:
    return {"alive": True, "version": __version__}


@app.get("/api/learning/stats")
async def learning_stats(
    controller: controller_mod.PageController = fastapi.Depends(get_controller),
) -> dict[str, object]:
    return controller.learning.stats().to_wire()


@app.get("/api/learning/export")
async def learning_export(
    controller: controller_mod.PageController = fastapi.Depends(get_controller),
) -> dict[str, object]:
    """Dump the global pattern map for backup or sharing."""
    return controller.learning.export().to_wire()


@app.post("/api/learning/import")
async def learning_import(
    body: store_mod.GlobalPatterns,
    controller: controller_mod.PageController = fastapi.Depends(get_controller),
) -> dict[str, object]:
    """Merge exported patterns; the more confident entry wins."""
    changed = controller.learning.import_patterns(body.patterns)
    return {"changed": changed, "stats": controller.learning.stats().to_wire()}


@app.post("/api/learning/reset")
async def learning_reset(
    controller: controller_mod.PageController = fastapi.Depends(get_controller),
) -> dict[str, object]:
    controller.learning.reset()
    return {"reset": True}


# ============================================================================
# Start Server
# ============================================================================


def main() -> None:
    """Entry point for running the server."""
    settings = config.get_settings()
    log.success(f"Server listening on {settings.host}:{settings.port}")
    uvicorn.run(
        "guardr.main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    main()
