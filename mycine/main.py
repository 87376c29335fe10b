"""FastAPI application entrypoint for the MyCine G gamification service."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from mycine.api.admin import router as admin_router
from mycine.api.catalog import router as catalog_router
from mycine.api.gamification import router as gamification_router
from mycine.api.reviews import router as reviews_router
from mycine.core.config import settings
from mycine.core.errors import GamificationError, UpstreamUnavailableError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="MyCine G")


@app.exception_handler(GamificationError)
async def gamification_error_handler(request: Request, exc: GamificationError) -> JSONResponse:
    """Render core errors with their status code and detail payload."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Report an unreachable database as a retryable failure."""
    logger.warning("Database unavailable while handling %s: %s", request.url.path, exc)
    error = UpstreamUnavailableError("database.unavailable", "The database is unavailable.")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


app.include_router(catalog_router)
app.include_router(gamification_router)
app.include_router(reviews_router)
app.include_router(admin_router)


@app.get("/health")
def health() -> dict[str, bool]:
    """Liveness check endpoint."""
    return {"ok": True}
