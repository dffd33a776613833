"""
Nephra API - application review and progress tracking backend
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nephra.routers import health, progress, review
from nephra.security import setup_security

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_PRODUCTION_ORIGIN = "https://nephra.vercel.app"
DEFAULT_DEVELOPMENT_ORIGINS = "http://localhost:3000,http://localhost:5173"


def resolve_allowed_origins(environment: str, raw: str | None) -> list[str]:
    """CORS origins for ``environment``.

    Production keeps only HTTPS, non-localhost origins and falls back to the
    default production origin when nothing valid is configured.
    """
    if environment == "production":
        origins = []
        for origin in (raw or DEFAULT_PRODUCTION_ORIGIN).split(","):
            origin = origin.strip()
            if not origin:
                continue
            if not origin.startswith("https://"):
                logger.warning("Rejecting non-HTTPS origin in production: %s", origin)
                continue
            if "localhost" in origin or "127.0.0.1" in origin:
                logger.warning("Rejecting localhost origin in production: %s", origin)
                continue
            origins.append(origin)
        return origins or [DEFAULT_PRODUCTION_ORIGIN]

    return [o.strip() for o in (raw or DEFAULT_DEVELOPMENT_ORIGINS).split(",") if o.strip()]


ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
ALLOWED_ORIGINS = resolve_allowed_origins(ENVIRONMENT, os.getenv("ALLOWED_ORIGINS"))


def create_app() -> FastAPI:
    app = FastAPI(
        title="Nephra API",
        description="Application review and progress tracking",
        version="1.0.0",
    )

    logger.info("CORS environment=%s allowed_origins=%s", ENVIRONMENT, ALLOWED_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    )
    setup_security(app, ALLOWED_ORIGINS)

    app.include_router(health.router)
    app.include_router(review.router)
    app.include_router(progress.router)
    return app


app = create_app()
