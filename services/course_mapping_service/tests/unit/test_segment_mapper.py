"""
Unit tests for SegmentMapper.

Covers dedup of spatial candidates, idempotence across repeated runs, the
COPY -> ORM fallback chain and the error states. Collaborators are in-memory
fakes at the protocol boundaries.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.config import Settings
from services.course_mapping_service.exceptions import (
    CourseNotFoundError,
    MappingFailedError,
    MappingSourceUnavailable,
)
from services.course_mapping_service.implementations.bulk_write import (
    BulkWriteStrategyKind,
    CopyStreamStrategy,
)
from services.course_mapping_service.implementations.segment_mapper_impl import (
    MappingState,
    SegmentMapper,
)
from services.course_mapping_service.metrics import MappingMetrics
from services.course_mapping_service.models_db import Course
from services.course_mapping_service.tests.fakes import (
    FakeMappingRepository,
    FakeSegmentCatalog,
    FakeStrategy,
    InMemoryMappingStore,
)


def build_mapper(
    catalog: FakeSegmentCatalog,
    store: InMemoryMappingStore,
    settings: Settings,
    fast_fails: bool = False,
    fallback_fails: bool = False,
    metrics: MappingMetrics | None = None,
) -> tuple[SegmentMapper, FakeStrategy, FakeStrategy]:
    fast = FakeStrategy(store, BulkWriteStrategyKind.COPY_STREAM, fail=fast_fails)
    fallback = FakeStrategy(store, BulkWriteStrategyKind.ORM_CHUNKED, fail=fallback_fails)
    mapper = SegmentMapper(
        catalog=catalog,
        repository=FakeMappingRepository(store),
        fast_strategy=fast,
        fallback_strategy=fallback,
        settings=settings,
        metrics=metrics,
    )
    return mapper, fast, fallback


class TestSegmentMapperDedup:
    @pytest.mark.asyncio
    async def test_duplicate_candidates_produce_one_row_each(
        self, course: Course, test_settings: Settings
    ) -> None:
        store = InMemoryMappingStore()
        catalog = FakeSegmentCatalog([7, 3, 7, 9, 3])
        mapper, fast, _ = build_mapper(catalog, store, test_settings)

        outcome = await mapper.map_segments_to_course(course)

        assert outcome.state is MappingState.DONE
        assert outcome.candidate_count == 5
        assert outcome.unique_candidate_count == 3
        # Distance order of first occurrence is preserved
        assert outcome.new_segment_gids == (7, 3, 9)
        assert outcome.written == 3
        assert store.gids_for(course.id) == {3, 7, 9}
        assert len(store.rows) == 3
        assert fast.calls == [(course.id, (7, 3, 9))]

    @pytest.mark.asyncio
    async def test_already_mapped_segments_are_skipped(
        self, course: Course, test_settings: Settings
    ) -> None:
        store = InMemoryMappingStore()
        store.insert_all(course.id, [1, 2])
        mapper, fast, _ = build_mapper(FakeSegmentCatalog([1, 2, 3, 4]), store, test_settings)

        outcome = await mapper.map_segments_to_course(course)

        assert outcome.new_segment_gids == (3, 4)
        assert fast.calls == [(course.id, (3, 4))]
        assert store.gids_for(course.id) == {1, 2, 3, 4}

    @pytest.mark.asyncio
    async def test_query_uses_configured_threshold_and_limit(
        self, course: Course
    ) -> None:
        settings = Settings(SEGMENT_PROXIMITY_THRESHOLD=7.5, SEGMENT_CANDIDATE_LIMIT=20)
        catalog = FakeSegmentCatalog([1])
        mapper, _, _ = build_mapper(catalog, InMemoryMappingStore(), settings)

        await mapper.map_segments_to_course(course)

        assert catalog.calls == [(len(course.path), 7.5, 20)]


class TestSegmentMapperIdempotence:
    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, course: Course, test_settings: Settings) -> None:
        store = InMemoryMappingStore()
        mapper, fast, fallback = build_mapper(
            FakeSegmentCatalog([10, 11, 12]), store, test_settings
        )

        first = await mapper.map_segments_to_course(course)
        rows_after_first = sorted(store.rows)
        second = await mapper.map_segments_to_course(course)

        assert first.written == 3
        assert sorted(store.rows) == rows_after_first
        assert second.written == 0
        assert second.strategy_used is None
        assert second.states == (
            MappingState.QUERIED,
            MappingState.DEDUPED,
            MappingState.EMPTY,
            MappingState.DONE,
        )
        assert len(fast.calls) == 1
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_empty_candidate_set_writes_nothing(
        self, course: Course, test_settings: Settings
    ) -> None:
        store = InMemoryMappingStore()
        mapper, fast, fallback = build_mapper(FakeSegmentCatalog([]), store, test_settings)

        outcome = await mapper.map_segments_to_course(course)

        assert outcome.state is MappingState.DONE
        assert MappingState.EMPTY in outcome.states
        assert fast.calls == [] and fallback.calls == []
        assert store.rows == []


class TestSegmentMapperFallback:
    @pytest.mark.asyncio
    async def test_fast_failure_falls_back_with_entire_set(
        self, course: Course, test_settings: Settings
    ) -> None:
        registry = CollectorRegistry()
        metrics = MappingMetrics(registry=registry)
        store = InMemoryMappingStore()
        mapper, fast, fallback = build_mapper(
            FakeSegmentCatalog([5, 6, 6, 8]), store, test_settings, fast_fails=True, metrics=metrics
        )

        outcome = await mapper.map_segments_to_course(course)

        assert outcome.fell_back is True
        assert outcome.strategy_used == BulkWriteStrategyKind.ORM_CHUNKED.value
        assert outcome.states == (
            MappingState.QUERIED,
            MappingState.DEDUPED,
            MappingState.WRITE_FAST,
            MappingState.WRITE_FAST_FAILED,
            MappingState.WRITE_FALLBACK,
            MappingState.DONE,
        )
        assert fast.calls == fallback.calls == [(course.id, (5, 6, 8))]
        assert registry.get_sample_value("cms_segment_mapping_fallbacks_total") == 1.0
        assert (
            registry.get_sample_value(
                "cms_segment_mapping_runs_total", {"outcome": "fallback"}
            )
            == 1.0
        )

    @pytest.mark.asyncio
    async def test_fallback_result_matches_safe_strategy_alone(
        self, course: Course, test_settings: Settings
    ) -> None:
        candidates = [21, 22, 21, 23, 24]

        fallback_store = InMemoryMappingStore()
        mapper, _, _ = build_mapper(
            FakeSegmentCatalog(candidates), fallback_store, test_settings, fast_fails=True
        )
        await mapper.map_segments_to_course(course)

        safe_store = InMemoryMappingStore()
        safe_only = FakeStrategy(safe_store, BulkWriteStrategyKind.ORM_CHUNKED)
        safe_mapper = SegmentMapper(
            catalog=FakeSegmentCatalog(candidates),
            repository=FakeMappingRepository(safe_store),
            fast_strategy=safe_only,
            fallback_strategy=safe_only,
            settings=test_settings,
        )
        await safe_mapper.map_segments_to_course(course)

        assert sorted(fallback_store.rows) == sorted(safe_store.rows)

    @pytest.mark.asyncio
    async def test_fallback_failure_raises_and_leaves_no_rows(
        self, course: Course, test_settings: Settings
    ) -> None:
        store = InMemoryMappingStore()
        mapper, _, _ = build_mapper(
            FakeSegmentCatalog([1, 2, 3]),
            store,
            test_settings,
            fast_fails=True,
            fallback_fails=True,
        )

        with pytest.raises(MappingFailedError) as exc_info:
            await mapper.map_segments_to_course(course)

        assert exc_info.value.course_id == course.id
        assert exc_info.value.attempted_rows == 3
        assert exc_info.value.__cause__ is not None
        assert store.rows == []
        assert mapper.last_outcome is not None
        assert mapper.last_outcome.state is MappingState.ERROR
        assert MappingState.FALLBACK_FAILED in mapper.last_outcome.states

    @pytest.mark.asyncio
    async def test_copy_driver_client_error_falls_back(
        self, course: Course, test_settings: Settings
    ) -> None:
        registry = CollectorRegistry()
        metrics = MappingMetrics(registry=registry)
        store = InMemoryMappingStore()
        copy_strategy = CopyStreamStrategy(MagicMock(spec=AsyncEngine), metrics=metrics)
        driver = AsyncMock()
        driver.copy_to_table.side_effect = asyncpg.exceptions.InternalClientError(
            "protocol desync"
        )

        @asynccontextmanager
        async def failing_driver_transaction() -> AsyncGenerator[AsyncMock, None]:
            yield driver

        copy_strategy.driver_transaction = failing_driver_transaction  # type: ignore[method-assign]
        fallback = FakeStrategy(store, BulkWriteStrategyKind.ORM_CHUNKED)
        mapper = SegmentMapper(
            catalog=FakeSegmentCatalog([4, 5, 6]),
            repository=FakeMappingRepository(store),
            fast_strategy=copy_strategy,
            fallback_strategy=fallback,
            settings=test_settings,
            metrics=metrics,
        )

        outcome = await mapper.map_segments_to_course(course)

        assert outcome.fell_back is True
        assert outcome.written == 3
        assert fallback.calls == [(course.id, (4, 5, 6))]
        assert store.gids_for(course.id) == {4, 5, 6}
        assert mapper.last_outcome is outcome
        assert (
            registry.get_sample_value(
                "cms_bulk_write_failures_total", {"strategy": "copy_stream"}
            )
            == 1.0
        )

    @pytest.mark.asyncio
    async def test_fast_path_illegal_input_records_error_outcome(
        self, course: Course, test_settings: Settings
    ) -> None:
        registry = CollectorRegistry()
        store = InMemoryMappingStore()
        mapper, fast, fallback = build_mapper(
            FakeSegmentCatalog([1, 2]),
            store,
            test_settings,
            metrics=MappingMetrics(registry=registry),
        )
        not_found = AsyncMock(side_effect=CourseNotFoundError(course.id))
        fast.write = not_found  # type: ignore[method-assign]

        with pytest.raises(CourseNotFoundError):
            await mapper.map_segments_to_course(course)

        assert fallback.calls == []
        assert mapper.last_outcome is not None
        assert mapper.last_outcome.state is MappingState.ERROR
        assert mapper.last_outcome.states[-2:] == (MappingState.WRITE_FAST, MappingState.ERROR)
        assert (
            registry.get_sample_value("cms_segment_mapping_runs_total", {"outcome": "error"})
            == 1.0
        )


class TestSegmentMapperSourceErrors:
    @pytest.mark.asyncio
    async def test_catalog_error_aborts_without_writes(
        self, course: Course, test_settings: Settings
    ) -> None:
        store = InMemoryMappingStore()
        mapper, fast, fallback = build_mapper(
            FakeSegmentCatalog(error=ConnectionError("catalog down")), store, test_settings
        )

        with pytest.raises(MappingSourceUnavailable) as exc_info:
            await mapper.map_segments_to_course(course)

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert fast.calls == [] and fallback.calls == []
        assert mapper.last_outcome is not None
        assert mapper.last_outcome.state is MappingState.ERROR

    @pytest.mark.parametrize(
        "raw_result",
        [
            {"gid": 1},
            ["1", "2"],
            [1, None],
            [True],
        ],
    )
    @pytest.mark.asyncio
    async def test_malformed_catalog_result_is_rejected(
        self, course: Course, test_settings: Settings, raw_result: object
    ) -> None:
        store = InMemoryMappingStore()
        mapper, fast, _ = build_mapper(
            FakeSegmentCatalog(raw_result=raw_result), store, test_settings
        )

        with pytest.raises(MappingSourceUnavailable):
            await mapper.map_segments_to_course(course)

        assert fast.calls == []
