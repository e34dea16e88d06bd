"""Bulk-write strategies for course segment associations."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.config import Settings
from services.course_mapping_service.metrics import MappingMetrics

from .base import BulkWriteStrategy, BulkWriteStrategyKind, chunked
from .batched_statement import BatchedStatementStrategy
from .copy_stream import CopyStreamStrategy, build_copy_payload
from .driver_executemany import DriverExecutemanyStrategy
from .multi_row_insert import MultiRowInsertStrategy, build_multi_row_insert
from .orm_chunked import OrmChunkedStrategy

STRATEGY_CLASSES: dict[BulkWriteStrategyKind, type[BulkWriteStrategy]] = {
    BulkWriteStrategyKind.ORM_CHUNKED: OrmChunkedStrategy,
    BulkWriteStrategyKind.BATCHED_STATEMENT: BatchedStatementStrategy,
    BulkWriteStrategyKind.DRIVER_EXECUTEMANY: DriverExecutemanyStrategy,
    BulkWriteStrategyKind.MULTI_ROW_INSERT: MultiRowInsertStrategy,
    BulkWriteStrategyKind.COPY_STREAM: CopyStreamStrategy,
}


def _chunk_size_for(kind: BulkWriteStrategyKind, settings: Settings) -> int:
    return {
        BulkWriteStrategyKind.ORM_CHUNKED: settings.ORM_CHUNK_SIZE,
        BulkWriteStrategyKind.BATCHED_STATEMENT: settings.BATCH_STATEMENT_GROUP_SIZE,
        BulkWriteStrategyKind.DRIVER_EXECUTEMANY: 1,
        BulkWriteStrategyKind.MULTI_ROW_INSERT: settings.MULTI_ROW_CHUNK_SIZE,
        BulkWriteStrategyKind.COPY_STREAM: settings.COPY_CHUNK_SIZE,
    }[kind]


def create_bulk_write_strategy(
    kind: BulkWriteStrategyKind,
    engine: AsyncEngine,
    settings: Settings,
    metrics: Optional[MappingMetrics] = None,
) -> BulkWriteStrategy:
    """Build the strategy for `kind` with chunk sizes taken from settings."""
    kind = BulkWriteStrategyKind(kind)
    strategy_class = STRATEGY_CLASSES[kind]
    return strategy_class(engine, _chunk_size_for(kind, settings), metrics)


def create_all_strategies(
    engine: AsyncEngine,
    settings: Settings,
    metrics: Optional[MappingMetrics] = None,
) -> list[BulkWriteStrategy]:
    """All strategies in their canonical order, sharing one engine."""
    return [
        create_bulk_write_strategy(kind, engine, settings, metrics)
        for kind in BulkWriteStrategyKind
    ]


__all__ = [
    "BulkWriteStrategy",
    "BulkWriteStrategyKind",
    "BatchedStatementStrategy",
    "CopyStreamStrategy",
    "DriverExecutemanyStrategy",
    "MultiRowInsertStrategy",
    "OrmChunkedStrategy",
    "STRATEGY_CLASSES",
    "build_copy_payload",
    "build_multi_row_insert",
    "chunked",
    "create_all_strategies",
    "create_bulk_write_strategy",
]
