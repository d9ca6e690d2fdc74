import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.database import create_tables
from contextlib import asynccontextmanager

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Migrations own the schema outside development
    if settings.APP_ENV == "development":
        await create_tables()
    logger.info(f"SimplyAppoint API started (env={settings.APP_ENV})")
    yield


app = FastAPI(
    title="SimplyAppoint API",
    description="Appointment scheduling and availability engine",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "simplyappoint-api", "version": "0.1.0"}
