"""Shared test fixtures and configuration for Course Mapping Service tests."""

from __future__ import annotations

import re
import uuid
from typing import Any, AsyncGenerator, Generator

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from testcontainers.postgres import PostgresContainer

from services.course_mapping_service.config import Settings
from services.course_mapping_service.models_db import Course
from services.course_mapping_service.startup_setup import initialize_database_schema
from services.course_mapping_service.tests.seed_data import (
    COURSE_PATH,
    FAR_SEGMENT_COUNT,
    NEAR_SEGMENT_COUNT,
    WALKROADS_DDL,
)

POSTGIS_IMAGE = "postgis/postgis:16-3.4"


@pytest.fixture(autouse=True)
def _clear_prometheus_registry() -> Any:
    """
    Clear the default Prometheus registry before each test.

    Prevents "Duplicated timeseries in CollectorRegistry" errors when several
    tests build MappingMetrics against the default registry.
    """
    collectors = list(REGISTRY._collector_to_names.keys())
    for collector in collectors:
        REGISTRY.unregister(collector)
    yield


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the GC settle pause disabled so benchmarks run fast."""
    return Settings(BENCHMARK_GC_SETTLE_SECONDS=0.0)


@pytest.fixture
def course() -> Course:
    """Transient course, never persisted."""
    return Course(id=uuid.uuid4(), title="Test course", path=COURSE_PATH)


# PostGIS fixtures used by integration and performance tests


@pytest.fixture(scope="session")
def postgis_container() -> Generator[PostgresContainer, None, None]:
    """Provide a PostGIS testcontainer, skipping when Docker is not available."""
    container = PostgresContainer(POSTGIS_IMAGE, driver=None)
    try:
        container.start()
    except Exception as e:  # Docker daemon missing or image pull failure
        pytest.skip(f"PostGIS testcontainer unavailable: {e}")
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture
async def async_engine(postgis_container: PostgresContainer) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on a clean schema with a seeded walkroads catalog."""
    conn_url = re.sub(
        r"^postgresql(\+\w+)?://", "postgresql+asyncpg://", postgis_container.get_connection_url()
    )
    engine = create_async_engine(conn_url, echo=False, pool_size=5, max_overflow=0)

    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
        await conn.execute(text(WALKROADS_DDL))
    await initialize_database_schema(engine)

    async with engine.begin() as conn:
        await conn.execute(
            text("TRUNCATE course_segment_mapping, courses, walkroads RESTART IDENTITY CASCADE")
        )
        # Short segments along the course path, then a few far away near (0, 0)
        for i in range(NEAR_SEGMENT_COUNT):
            lon = 126.9780 + i * 0.0005
            await conn.execute(
                text(
                    "INSERT INTO walkroads (coordinate) VALUES "
                    "(ST_GeomFromText(:line, 4326))"
                ),
                {"line": f"LINESTRING({lon} 37.5666, {lon + 0.0004} 37.5668)"},
            )
        for i in range(FAR_SEGMENT_COUNT):
            await conn.execute(
                text(
                    "INSERT INTO walkroads (coordinate) VALUES "
                    "(ST_GeomFromText(:line, 4326))"
                ),
                {"line": f"LINESTRING({i}.0 0.0, {i}.5 0.5)"},
            )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def persisted_course(async_engine: AsyncEngine) -> Course:
    session_maker = async_sessionmaker(async_engine, expire_on_commit=False)
    async with session_maker() as session:
        course = Course(title="Performance test course", path=COURSE_PATH)
        session.add(course)
        await session.commit()
        return course
