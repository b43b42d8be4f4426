"""
Social Connect - FastAPI Backend
OAuth connector for linking creator social accounts.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, social_connect
from services.connectors.types import ConnectorError
from services.sync_queue import recover_stalled_sync_jobs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Social Connect API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    try:
        recovered = await recover_stalled_sync_jobs(settings.SYNC_JOB_STALL_MINUTES)
        if recovered:
            print(f"♻️ Marked {recovered} stalled sync jobs as failed after startup.")
    except Exception as exc:
        print(f"⚠️ Stalled sync job recovery skipped: {exc}")
    yield
    # Shutdown
    print("👋 Shutting down API...")


app = FastAPI(
    title="Social Connect API",
    description="Link creator social accounts via OAuth and keep their audience stats fresh",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware; answers OPTIONS preflight before routing.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@app.exception_handler(ConnectorError)
async def connector_error_handler(request: Request, exc: ConnectorError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(social_connect.router, tags=["Social Connect"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Social Connect API",
        "version": "0.1.0",
        "status": "running"
    }
