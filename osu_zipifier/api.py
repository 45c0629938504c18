"""
FastAPI application serving zipped beatmap sets.
"""

from __future__ import annotations

import asyncio
import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from .config import get_settings
from .context import AppContext, build_context
from .core.orchestrator import BatchOrchestrator
from .errors import ArtifactMissing, ZipifierError
from .log import configure_logging
from .osu.credentials import refresh_token_periodically
from .schemas.request import ServeMapsRequest

logger = structlog.get_logger()

settings = get_settings()

ARCHIVE_FILENAME = "maps.zip"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("Starting osu-zipifier")

    try:
        context = build_context(settings)
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise
    app.state.context = context
    logger.info("Context initialized", store_dir=str(context.store.root))

    refresh_task: Optional[asyncio.Task] = None
    if settings.has_osu_credentials:
        refresh_task = asyncio.create_task(refresh_token_periodically(context))
    else:
        logger.warning(
            "osu API credentials are not set; difficulty id requests will fail"
        )

    yield

    logger.info("Shutting down osu-zipifier")
    if refresh_task is not None:
        refresh_task.cancel()
        try:
            await refresh_task
        except asyncio.CancelledError:
            logger.info("Cancelled task: token_refresh")
    await context.aclose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="osu-zipifier",
    description="Downloads osu! beatmap sets from mirrors and serves them as one zip",
    version=importlib.metadata.version("osu-zipifier"),
    lifespan=lifespan,
)


def get_context(request: Request) -> AppContext:
    """Dependency returning the application context."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Application context not initialized")
    return context


@app.exception_handler(ZipifierError)
async def zipifier_error_handler(request: Request, exc: ZipifierError) -> JSONResponse:
    if isinstance(exc, ArtifactMissing):
        logger.error("internal_consistency_error", error=exc.message)
    else:
        logger.error("request_failed", error=exc.message, code=exc.code)
    return JSONResponse(
        status_code=500,
        content={"error": exc.code, "message": f"Something went wrong: {exc.message}"},
    )


@app.exception_handler(OSError)
async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
    logger.error("request_failed", error=str(exc), code="local_io_error")
    return JSONResponse(
        status_code=500,
        content={"error": "local_io_error", "message": f"Something went wrong: {exc}"},
    )


def zip_response(data: bytes) -> Response:
    """Wrap archive bytes with zip content headers."""
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ARCHIVE_FILENAME}"'},
    )


@app.api_route("/", methods=["GET", "POST"], tags=["maps"])
async def serve_maps(
    request: ServeMapsRequest, context: AppContext = Depends(get_context)
) -> Response:
    """Return a zip with every requested beatmap set."""
    archive = await BatchOrchestrator(context).serve(request)
    return zip_response(archive)


# Health and Info Endpoints
@app.get("/healthz", tags=["system"])
def healthz() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version", tags=["system"])
def version() -> Dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("osu-zipifier")}


@app.get("/status", tags=["system"])
def get_status(context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    """Store and cache summary."""
    return {
        "store": {
            "directory": str(context.store.root),
            "artifacts": context.store.count(),
        },
        "cache": {"resolutions": context.cache.count()},
        "osu_api": {"access_token_loaded": context.access_token is not None},
        "mirrors": context.settings.mirrors,
        "settings": {
            "environment": context.settings.environment,
            "debug": context.settings.debug,
        },
    }
