from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.implementations.bulk_write.base import (
    MAPPING_TABLE,
    BulkWriteStrategy,
    BulkWriteStrategyKind,
)
from services.course_mapping_service.metrics import MappingMetrics

DRIVER_INSERT_SQL = f"INSERT INTO {MAPPING_TABLE} (course_id, segment_gid) VALUES ($1, $2)"


class DriverExecutemanyStrategy(BulkWriteStrategy):
    """All rows handed to asyncpg's executemany in a single driver call."""

    kind = BulkWriteStrategyKind.DRIVER_EXECUTEMANY
    display_name = "Driver executemany (asyncpg)"

    def __init__(
        self,
        engine: AsyncEngine,
        chunk_size: int = 1,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        # No chunking: the whole input goes to the driver at once.
        super().__init__(engine, chunk_size, metrics)

    def expected_round_trips(self, size: int) -> int:
        return 1 if size > 0 else 0

    async def _write(self, course_id: uuid.UUID, segment_gids: list[int]) -> None:
        async with self.driver_transaction() as driver:
            await driver.executemany(
                DRIVER_INSERT_SQL, [(course_id, gid) for gid in segment_gids]
            )
