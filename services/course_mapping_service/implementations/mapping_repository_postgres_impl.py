from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from services.course_mapping_service.models_db import Course, CourseSegmentMapping
from services.course_mapping_service.protocols import MappingRepositoryProtocol


class PostgreSQLMappingRepositoryImpl(MappingRepositoryProtocol):
    """PostgreSQL implementation of MappingRepositoryProtocol."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.async_session_maker = async_sessionmaker(engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional session context."""
        session = self.async_session_maker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def get_course(self, course_id: uuid.UUID) -> Course | None:
        async with self.session() as session:
            return await session.get(Course, course_id)

    async def get_segment_gids_for_course(self, course_id: uuid.UUID) -> set[int]:
        async with self.session() as session:
            stmt = select(CourseSegmentMapping.segment_gid).where(
                CourseSegmentMapping.course_id == course_id
            )
            result = await session.execute(stmt)
            return set(result.scalars().all())

    async def find_by_course_id(self, course_id: uuid.UUID) -> list[CourseSegmentMapping]:
        async with self.session() as session:
            stmt = (
                select(CourseSegmentMapping)
                .where(CourseSegmentMapping.course_id == course_id)
                .order_by(CourseSegmentMapping.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_for_course(self, course_id: uuid.UUID) -> int:
        async with self.session() as session:
            stmt = (
                select(func.count())
                .select_from(CourseSegmentMapping)
                .where(CourseSegmentMapping.course_id == course_id)
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def delete_by_course_id(self, course_id: uuid.UUID) -> int:
        async with self.session() as session:
            stmt = (
                delete(CourseSegmentMapping)
                .where(CourseSegmentMapping.course_id == course_id)
                .returning(CourseSegmentMapping.id)
            )
            result = await session.execute(stmt)
            return len(result.scalars().all())
