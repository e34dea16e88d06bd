from __future__ import annotations

import uuid
from typing import Optional, Sequence

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


def build_multi_row_insert(course_id: uuid.UUID, segment_gids: Sequence[int]) -> str:
    """Render one INSERT with inlined value tuples.

    Only a validated UUID and ints are rendered, so no quoting beyond the
    UUID literal is needed.
    """
    literal_course_id = str(uuid.UUID(str(course_id)))
    values = ", ".join(
        f"(CAST('{literal_course_id}' AS uuid), {int(gid)})" for gid in segment_gids
    )
    return f"INSERT INTO {MAPPING_TABLE} (course_id, segment_gid) VALUES {values}"


class MultiRowInsertStrategy(BulkWriteStrategy):
    """A single multi-row INSERT per chunk, bounded to keep statements small."""

    kind = BulkWriteStrategyKind.MULTI_ROW_INSERT
    display_name = "Multi-row INSERT"

    def __init__(
        self,
        engine: AsyncEngine,
        chunk_size: int = 1000,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        super().__init__(engine, chunk_size, metrics)

    def expected_round_trips(self, size: int) -> int:
        return ceil_div(size, self.chunk_size)

    async def _write(self, course_id: uuid.UUID, segment_gids: list[int]) -> None:
        async with self.engine.begin() as conn:
            for chunk in chunked(segment_gids, self.chunk_size):
                await conn.execute(text(build_multi_row_insert(course_id, chunk)))
