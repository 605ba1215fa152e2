"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from meter_reader.api.routes import api_router
from meter_reader.core.config import settings
from meter_reader.core.database import Base, engine
from meter_reader.core.errors import register_exception_handlers
from meter_reader.core.logging_config import configure_logging

# Import models for Base.metadata.create_all
from meter_reader.models import reading  # noqa: F401
from meter_reader.services.image_storage import UPLOADS_MOUNT, upload_dir

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    configure_logging()
    # Startup: Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Reads utility meter photos and tracks monthly readings",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Stored meter photos
app.mount(UPLOADS_MOUNT, StaticFiles(directory=str(upload_dir())), name="uploads")

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "meter_reader.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
