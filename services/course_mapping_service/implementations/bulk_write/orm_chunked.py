from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.course_mapping_service.exceptions import CourseNotFoundError
from services.course_mapping_service.implementations.bulk_write.base import (
    BulkWriteStrategy,
    BulkWriteStrategyKind,
    chunked,
)
from services.course_mapping_service.metrics import MappingMetrics
from services.course_mapping_service.models_db import Course, CourseSegmentMapping


class OrmChunkedStrategy(BulkWriteStrategy):
    """Entity inserts through the ORM session, flushed and cleared every chunk.

    Clearing the identity map after each flush bounds the memory held by
    pending objects. All chunks share one transaction.
    """

    kind = BulkWriteStrategyKind.ORM_CHUNKED
    display_name = "ORM (add_all + flush)"

    def __init__(
        self,
        engine: AsyncEngine,
        chunk_size: int = 50,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        super().__init__(engine, chunk_size, metrics)
        self.async_session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            engine, expire_on_commit=False
        )

    def expected_round_trips(self, size: int) -> int:
        return max(size, 0)

    async def _write(self, course_id: uuid.UUID, segment_gids: list[int]) -> None:
        async with self.async_session_maker() as session:
            async with session.begin():
                course = await session.get(Course, course_id)
                if course is None:
                    raise CourseNotFoundError(course_id)

                for chunk in chunked(segment_gids, self.chunk_size):
                    session.add_all(
                        [
                            CourseSegmentMapping(course_id=course_id, segment_gid=gid)
                            for gid in chunk
                        ]
                    )
                    await session.flush()
                    session.expunge_all()
