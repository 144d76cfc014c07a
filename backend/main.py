import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGINS,
    LOG_LEVEL,
    SIGNING_KEY_GENERATED,
)
from backend.errors import register_error_handlers
from backend.routers import auth, core, dashboard, time_registrations, workers
from database.db import create_tables

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    create_tables()
    if SIGNING_KEY_GENERATED:
        logger.warning(
            "TIMETRACK_SIGNING_KEY is not set; using a per-process key. "
            "Admin tokens will not survive a restart or work across workers."
        )
    logger.info("TimeTrack API ready")
    yield


app = FastAPI(title="TimeTrack API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)

register_error_handlers(app)

app.include_router(core.router)
app.include_router(auth.router)
app.include_router(time_registrations.router)
app.include_router(workers.router)
app.include_router(dashboard.router)
