from __future__ import annotations

from typing import Optional

from dishka import AsyncContainer
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.config import Settings
from services.course_mapping_service.config import settings as default_settings
from services.course_mapping_service.di import create_container
from services.course_mapping_service.logging_utils import (
    configure_service_logging,
    create_service_logger,
)
from services.course_mapping_service.models_db import Base

logger = create_service_logger("course_mapping_service.startup")


async def initialize_database_schema(engine: AsyncEngine) -> None:
    """Create the courses and course_segment_mapping tables if missing."""
    try:
        logger.info("Initializing database schema...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized successfully")
    except Exception as e:
        logger.critical(f"Failed to initialize database schema: {e}", exc_info=True)
        raise


async def startup(
    settings: Optional[Settings] = None,
    registry: Optional[CollectorRegistry] = None,
    create_schema: bool = True,
) -> AsyncContainer:
    """Configure logging, build the container and optionally create the schema."""
    settings = settings or default_settings
    configure_service_logging(
        settings.SERVICE_NAME,
        environment=settings.ENVIRONMENT.value,
        log_level=settings.LOG_LEVEL,
    )
    container = create_container(settings, registry)
    if create_schema:
        engine = await container.get(AsyncEngine)
        await initialize_database_schema(engine)
    logger.info("Course Mapping Service started", service=settings.SERVICE_NAME)
    return container
