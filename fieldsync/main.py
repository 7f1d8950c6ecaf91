"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fieldsync.api import auth, forms, health, my_submissions, submissions
from fieldsync.core.config import settings
from fieldsync.core.database import Base, engine
from fieldsync.core.logging_setup import configure_logging
import fieldsync.models  # noqa: F401  (register tables on Base.metadata)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    yield


def create_app() -> FastAPI:
    """Build the application with all routers mounted under ``API_PREFIX``."""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="fieldsync", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (health, auth, forms, submissions, my_submissions):
        app.include_router(module.router, prefix=settings.API_PREFIX)

    return app


app = create_app()
