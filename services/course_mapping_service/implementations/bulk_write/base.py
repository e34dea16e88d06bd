"""
Shared contract and plumbing for the bulk-write strategies.

Every strategy inserts one `course_segment_mapping` row per supplied segment
gid inside a single transaction. Driver and SQLAlchemy errors are converted to
`StrategyWriteFailure`; validation errors surface as `IllegalInputError`.
"""

from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncGenerator, ClassVar, Iterator, Optional, Sequence

import asyncpg
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.exceptions import (
    CourseMappingServiceError,
    IllegalInputError,
    StrategyWriteFailure,
)
from services.course_mapping_service.logging_utils import create_service_logger
from services.course_mapping_service.metrics import MappingMetrics
from services.course_mapping_service.models_db import CourseSegmentMapping

logger = create_service_logger("course_mapping_service.bulk_write")

MAPPING_TABLE = CourseSegmentMapping.__tablename__
MAPPING_COLUMNS = ("course_id", "segment_gid")

# InternalClientError covers client-side driver failures such as ProtocolError
WRITE_ERRORS = (
    SQLAlchemyError,
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.InternalClientError,
    OSError,
)


class BulkWriteStrategyKind(str, Enum):
    """The closed set of bulk-write strategies."""

    ORM_CHUNKED = "orm_chunked"
    BATCHED_STATEMENT = "batched_statement"
    DRIVER_EXECUTEMANY = "driver_executemany"
    MULTI_ROW_INSERT = "multi_row_insert"
    COPY_STREAM = "copy_stream"


def chunked(items: Sequence[int], size: int) -> Iterator[Sequence[int]]:
    """Yield consecutive slices of at most `size` items."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def ceil_div(size: int, chunk_size: int) -> int:
    return -(-size // chunk_size) if size > 0 else 0


def normalize_course_id(course_id: Any) -> uuid.UUID:
    if isinstance(course_id, uuid.UUID):
        return course_id
    if isinstance(course_id, str):
        try:
            return uuid.UUID(course_id)
        except ValueError as e:
            raise IllegalInputError(f"Invalid course id: {course_id!r}") from e
    raise IllegalInputError(f"Invalid course id type: {type(course_id).__name__}")


def normalize_segment_gids(segment_gids: Sequence[Any]) -> list[int]:
    gids: list[int] = []
    for gid in segment_gids:
        # bool is an int subclass but never a valid segment id
        if isinstance(gid, bool) or not isinstance(gid, int):
            raise IllegalInputError(f"Invalid segment gid: {gid!r}")
        gids.append(gid)
    return gids


class BulkWriteStrategy(ABC):
    """Base class for the bulk-write strategies."""

    kind: ClassVar[BulkWriteStrategyKind]
    display_name: ClassVar[str]

    def __init__(
        self,
        engine: AsyncEngine,
        chunk_size: int,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk size must be positive, got {chunk_size}")
        self.engine = engine
        self.chunk_size = chunk_size
        self.metrics = metrics

    @abstractmethod
    def expected_round_trips(self, size: int) -> int:
        """Number of statements sent to the store for `size` rows."""

    @abstractmethod
    async def _write(self, course_id: uuid.UUID, segment_gids: list[int]) -> None:
        """Insert all rows in one transaction."""

    async def write(self, course_id: Any, segment_gids: Sequence[int]) -> int:
        """Insert one association per gid and return the number of rows written."""
        normalized_course_id = normalize_course_id(course_id)
        gids = normalize_segment_gids(segment_gids)

        if not gids:
            logger.debug("Empty segment list, nothing to write", strategy=self.kind.value)
            return 0

        start_time = time.perf_counter()
        success = True
        logger.debug(
            "Bulk write started",
            strategy=self.kind.value,
            course_id=str(normalized_course_id),
            rows=len(gids),
        )
        try:
            await self._write(normalized_course_id, gids)
        except CourseMappingServiceError:
            success = False
            raise
        except WRITE_ERRORS as e:
            success = False
            logger.error(
                "Bulk write failed",
                strategy=self.kind.value,
                course_id=str(normalized_course_id),
                rows=len(gids),
                error_type=e.__class__.__name__,
                exc_info=True,
            )
            raise StrategyWriteFailure(
                self.kind.value,
                normalized_course_id,
                len(gids),
                reason=f"{e.__class__.__name__}: {e}",
            ) from e
        finally:
            duration = time.perf_counter() - start_time
            if self.metrics:
                self.metrics.record_bulk_write(self.kind.value, len(gids), duration, success)

        logger.info(
            "Bulk write completed",
            strategy=self.kind.value,
            course_id=str(normalized_course_id),
            rows=len(gids),
            duration_ms=round(duration * 1000, 2),
        )
        return len(gids)

    @asynccontextmanager
    async def driver_transaction(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Yield the pooled asyncpg connection inside a driver-level transaction."""
        async with self.engine.connect() as conn:
            raw_connection = await conn.get_raw_connection()
            driver_connection: asyncpg.Connection = raw_connection.driver_connection
            async with driver_connection.transaction():
                yield driver_connection

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chunk_size={self.chunk_size})"
