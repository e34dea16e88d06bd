from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.implementations.bulk_write.base import (
    MAPPING_TABLE,
    BulkWriteStrategy,
    BulkWriteStrategyKind,
    ceil_div,
    chunked,
)
from services.course_mapping_service.metrics import MappingMetrics

INSERT_MAPPING_SQL = text(
    f"INSERT INTO {MAPPING_TABLE} (course_id, segment_gid) VALUES (:course_id, :segment_gid)"
)


class BatchedStatementStrategy(BulkWriteStrategy):
    """One parameterized INSERT executed with a parameter list per group."""

    kind = BulkWriteStrategyKind.BATCHED_STATEMENT
    display_name = "Batched statement (executemany)"

    def __init__(
        self,
        engine: AsyncEngine,
        chunk_size: int = 100,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        super().__init__(engine, chunk_size, metrics)

    def expected_round_trips(self, size: int) -> int:
        return ceil_div(size, self.chunk_size)

    async def _write(self, course_id: uuid.UUID, segment_gids: list[int]) -> None:
        async with self.engine.begin() as conn:
            for group in chunked(segment_gids, self.chunk_size):
                await conn.execute(
                    INSERT_MAPPING_SQL,
                    [{"course_id": course_id, "segment_gid": gid} for gid in group],
                )
