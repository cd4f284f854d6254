"""Application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from diffpilot import __version__
from diffpilot.api.container import get_container
from diffpilot.api.dependencies import limiter, rate_limit
from diffpilot.api.routes.projects import router as projects_router
from diffpilot.api.routes.tools import router as tools_router
from diffpilot.api.routes.workflow import router as workflow_router
from diffpilot.shared.logging import setup_logging

log = structlog.get_logger()


def apply_logging_config(container) -> None:
    """Apply logging from container config (stdout + optional file)."""
    c = container.config
    setup_logging(
        level=c.log_level,
        file_path=c.log_file or "",
        rotation_max_mb=c.log_rotation_max_mb,
        rotation_backups=c.log_rotation_backups,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load config, setup logging, seed presets. Shutdown: stop the tool server."""
    container = get_container()
    apply_logging_config(container)
    log.info("startup_begin", tool_server_command=container.config.tool_server.command or None)
    seeded = container.seed_presets()
    log.info("startup_complete", presets=len(container.presets), seeded=seeded)
    yield
    log.info("shutdown_begin")
    await container.aclose()
    log.info("shutdown_complete")


app = FastAPI(
    title="DiffPilot",
    version=__version__,
    description="Guarded analyze / dry-run / apply code changes through a JSON-RPC tool server",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(projects_router)
app.include_router(tools_router)
app.include_router(workflow_router)


@app.get("/health")
@limiter.limit(rate_limit)
async def health(request: Request) -> dict:
    """Health check with tool server state."""
    container = get_container()
    tool_server = container.tool_server
    state = getattr(tool_server, "state", None)
    return {
        "status": "ok",
        "service": "diffpilot",
        "version": __version__,
        "tool_server_state": getattr(state, "value", state),
        "pending_requests": getattr(tool_server, "pending_count", 0),
        "dropped_lines": getattr(tool_server, "dropped_lines", 0),
    }
