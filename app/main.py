from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.database import AsyncSessionLocal, init_db
from app.core.logging import configure_logging
from app.core.redis import redis_client
from app.services.wash_type import WashTypeService

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Application starting up", environment=settings.ENVIRONMENT)

    await init_db()
    async with AsyncSessionLocal() as db:
        await WashTypeService.seed_default_wash_types(db)

    try:
        await redis_client.init_redis()
    except Exception as e:
        # Preferences fall back to defaults until Redis is reachable
        logger.warning("Redis unavailable at startup", error=str(e))

    yield

    await redis_client.close()
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "healthy", "version": settings.VERSION}
