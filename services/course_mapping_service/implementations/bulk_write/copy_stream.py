from __future__ import annotations

import io
import uuid
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.implementations.bulk_write.base import (
    MAPPING_COLUMNS,
    MAPPING_TABLE,
    BulkWriteStrategy,
    BulkWriteStrategyKind,
    ceil_div,
    chunked,
)
from services.course_mapping_service.metrics import MappingMetrics


def build_copy_payload(course_id: uuid.UUID, segment_gids: Sequence[int]) -> bytes:
    """Serialize rows in COPY text format: tab-separated, newline-terminated."""
    return "".join(f"{course_id}\t{gid}\n" for gid in segment_gids).encode("utf-8")


class CopyStreamStrategy(BulkWriteStrategy):
    """PostgreSQL COPY FROM STDIN through asyncpg.

    Rows are streamed in chunks to bound the in-memory buffer. All chunks run
    in one transaction, so a failed chunk leaves nothing committed.
    """

    kind = BulkWriteStrategyKind.COPY_STREAM
    display_name = "PostgreSQL COPY"

    def __init__(
        self,
        engine: AsyncEngine,
        chunk_size: int = 5000,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        super().__init__(engine, chunk_size, metrics)

    def expected_round_trips(self, size: int) -> int:
        return ceil_div(size, self.chunk_size)

    async def _write(self, course_id: uuid.UUID, segment_gids: list[int]) -> None:
        async with self.driver_transaction() as driver:
            for chunk in chunked(segment_gids, self.chunk_size):
                await driver.copy_to_table(
                    MAPPING_TABLE,
                    source=io.BytesIO(build_copy_payload(course_id, chunk)),
                    columns=list(MAPPING_COLUMNS),
                    format="text",
                )
