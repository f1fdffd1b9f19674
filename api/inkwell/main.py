"""Inkwell API application: schema bootstrap, middleware and routers."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import settings
from .db import Base, engine, is_postgres
from .errors import InkwellError
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from .routers import (
    categories,
    comments,
    feeds,
    likes,
    media,
    posts,
    profiles,
    search,
    stats,
    system,
    tags,
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

API_ROOT = Path(__file__).resolve().parent.parent

_schema_ready = False


def alembic_config() -> Config:
    """Alembic config pointing at ``api/alembic`` regardless of the working directory."""
    cfg = Config(str(API_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(API_ROOT / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("Upgrading database schema to head")
    try:
        command.upgrade(alembic_config(), "head")
    except Exception as e:
        logger.error(f"Schema upgrade failed: {e}", exc_info=True)
        raise
    logger.info("Database schema is up to date")


def run_startup_tasks() -> None:
    """
    Bring the schema up to date and make sure the media folder exists.

    PostgreSQL goes through Alembic (which also installs row-level security
    and the search index); SQLite development databases are created
    straight from the models. Safe to call more than once.
    """
    global _schema_ready
    if _schema_ready:
        return

    if is_postgres():
        run_migrations()
    else:
        Base.metadata.create_all(bind=engine)
        logger.info(f"Created tables on {engine.dialect.name} from models")

    Path(settings.MEDIA_LOCATION).mkdir(parents=True, exist_ok=True)
    _schema_ready = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    run_startup_tasks()
    logger.info(f"{settings.SITE_TITLE} API ready")
    yield
    logger.info(f"{settings.SITE_TITLE} API stopping")


app = FastAPI(
    title="Inkwell API",
    version="1.0.0",
    description="Blog publishing API: posts, taxonomy, comments, likes, media and analytics",
    lifespan=lifespan,
)


def _allowed_origins() -> list[str]:
    """``CORS_ORIGINS`` as a list; ``*`` is accepted but logged as a warning."""
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
    if raw.strip() == "*":
        logger.warning("CORS_ORIGINS is '*': any site may call the API with credentials")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
    max_age=600,
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(InkwellError)
async def inkwell_error_handler(request: Request, exc: InkwellError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


for module in (system, profiles, categories, tags, comments, likes, media, stats):
    app.include_router(module.router)
# Posts go last among /post routes: GET /post/{slug} would shadow the others
app.include_router(posts.router)
app.include_router(posts.short_links)
app.include_router(search.router)
app.include_router(feeds.router)


# Uploaded media is served from MEDIA_LOCATION when the base URL is local
if settings.MEDIA_BASE_URL.startswith("/"):
    media_root = Path(settings.MEDIA_LOCATION)
    media_root.mkdir(parents=True, exist_ok=True)
    app.mount(settings.MEDIA_BASE_URL, StaticFiles(directory=str(media_root)), name="uploads")
    logger.info(f"Serving uploads at {settings.MEDIA_BASE_URL} from {media_root}")
