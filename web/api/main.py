"""FastAPI scoring API - tournament rooms, live scores and the player directory."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from scorekeeper.models.base import init_db

from web.api.routes import router as api_router
from web.api.score_routes import router as score_router
from web.api.directory_routes import router as directory_router
from web.api.auth_routes import router as auth_router
from web.api.alert_routes import router as alert_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("parcourse")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    if not config.MASTER_DIRECTOR_PIN:
        logger.warning("MASTER_DIRECTOR_PIN is not set; master director endpoints are disabled")
    yield


app = FastAPI(title="Par for the Course Scoring API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)
app.include_router(score_router)
app.include_router(directory_router)
app.include_router(auth_router)
app.include_router(alert_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
