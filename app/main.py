"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import SessionLocal, UnitOfWork, close_engine
from app.core.metrics import build_metrics_response, instrument_http_request
from app.modules.booking.repository import BookingRepository
from app.modules.booking.router import router as booking_router
from app.modules.catalog.repository import CatalogRepository
from app.modules.catalog.service import CatalogService
from app.modules.identity.router import router as identity_router
from app.modules.instructor.router import router as instructor_router
from app.shared.exceptions import register_exception_handlers
from app.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


def _landing_page_html() -> str:
    """Plain index with links to docs and probes."""
    links = (
        ("/docs", "OpenAPI docs"),
        ("/health", "Liveness"),
        ("/ready", "Readiness"),
        ("/metrics", "Prometheus metrics"),
    )
    items = "\n".join(f'        <li><a href="{href}">{label}</a></li>' for href, label in links)
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{settings.app_name}</title>
    <style>
      body {{ font-family: system-ui, sans-serif; max-width: 640px; margin: 40px auto; color: #222; }}
      code {{ background: #eef1f4; padding: 2px 4px; }}
    </style>
  </head>
  <body>
    <h1>{settings.app_name}</h1>
    <p>Weekly session booking backend. Student and instructor routes live under <code>{settings.api_prefix}</code>.</p>
    <ul>
{items}
    </ul>
  </body>
</html>
"""


async def _seed_catalog() -> None:
    async with SessionLocal() as session:
        service = CatalogService(
            repository=CatalogRepository(session),
            booking_repository=BookingRepository(session),
            unit_of_work=UnitOfWork(session),
        )
        try:
            created = await service.ensure_catalog()
        except Exception:
            logger.exception("Failed during startup catalog seeding")
            raise
        logger.info("Session catalog ensured (%s created)", created)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("Starting %s", settings.app_name)

    if settings.seed_catalog_on_startup:
        await _seed_catalog()

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(identity_router, prefix=settings.api_prefix)
app.include_router(booking_router, prefix=settings.api_prefix)
app.include_router(instructor_router, prefix=settings.api_prefix)


@app.get("/", include_in_schema=False, response_class=HTMLResponse)
async def landing_page() -> HTMLResponse:
    """Root page with quick navigation links."""
    return HTMLResponse(content=_landing_page_html())


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness probe endpoint with DB dependency check."""
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
