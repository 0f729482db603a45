import logging
import os
from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import get_settings
from backend.database import init_db, set_db_path
from backend.dependencies import get_credential_store, get_session_controller
from backend.routers import health, credentials, models, chat, chats, costs

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    # Ensure data directory exists
    db_path = Path(settings.database_url)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # Initialize database
    set_db_path(settings.database_url)
    await init_db()

    api_key = await get_credential_store().get()
    if api_key:
        get_session_controller().set_credential(api_key)
        logger.info("Loaded stored OpenRouter API key")
    logger.info("RouterChat backend started")

    yield

    logger.info("RouterChat backend shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="RouterChat API",
        description="Streaming OpenRouter chat with per-message cost reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(health.router)
    app.include_router(credentials.router)
    app.include_router(models.router)
    app.include_router(chat.router)
    app.include_router(chats.router)
    app.include_router(costs.router)

    # CORS: Streamlit origins plus any from ALLOWED_ORIGINS
    origins = [
        "http://localhost:8501",
        "http://127.0.0.1:8501",
    ]
    extra_origins = get_settings().allowed_origins or os.environ.get("ALLOWED_ORIGINS", "")
    if extra_origins:
        origins.extend(
            o.strip()
            for o in extra_origins.split(",")
            if o.strip()
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()


@app.get("/")
async def read_root():
    return {
        "status": "ok",
        "message": "RouterChat backend is running",
        "docs": "/docs",
    }
