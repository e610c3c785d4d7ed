"""FastAPI entry point for the commission application."""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from commissiondesk import __version__
from commissiondesk.core.logging import configure_logging, get_logger
from commissiondesk.database import init_db
from commissiondesk.errors import CommissionDeskError
from commissiondesk.routers import activities, analytics, auth, campaigns, dashboard, orders, profile, users

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    init_db()
    logger.info("application_started", version=__version__)
    yield


app = FastAPI(title="Commission Desk", version=__version__, lifespan=lifespan)

app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(users.router)
app.include_router(campaigns.router)
app.include_router(orders.router)
app.include_router(dashboard.router)
app.include_router(analytics.router)
app.include_router(activities.router)


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health endpoint for load balancers and platform checks."""
    return {"status": "ok", "version": __version__}


@app.exception_handler(CommissionDeskError)
async def commission_error_handler(request: Request, exc: CommissionDeskError):
    """Map domain errors to their HTTP status with a ``detail`` body."""
    logger.info("request_rejected", path=request.url.path, error=type(exc).__name__, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
