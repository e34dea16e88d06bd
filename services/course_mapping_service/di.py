from __future__ import annotations

from typing import AsyncIterator, Optional

from dishka import AsyncContainer, Provider, Scope, make_async_container, provide
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from services.course_mapping_service.config import Settings
from services.course_mapping_service.config import settings as default_settings
from services.course_mapping_service.implementations.bulk_write import (
    BulkWriteStrategy,
    BulkWriteStrategyKind,
    create_all_strategies,
)
from services.course_mapping_service.implementations.mapping_repository_postgres_impl import (
    PostgreSQLMappingRepositoryImpl,
)
from services.course_mapping_service.implementations.segment_catalog_postgis_impl import (
    PostGISSegmentCatalogImpl,
)
from services.course_mapping_service.implementations.segment_mapper_impl import SegmentMapper
from services.course_mapping_service.metrics import MappingMetrics
from services.course_mapping_service.protocols import (
    MappingRepositoryProtocol,
    SegmentCatalogProtocol,
)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the pooled engine shared by every component."""
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
    )


class ServiceProvider(Provider):
    def __init__(self, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self._settings = settings or default_settings

    @provide(scope=Scope.APP)
    def provide_settings(self) -> Settings:
        return self._settings


class DatabaseProvider(Provider):
    @provide(scope=Scope.APP)
    async def provide_engine(self, settings: Settings) -> AsyncIterator[AsyncEngine]:
        engine = create_engine_from_settings(settings)
        yield engine
        await engine.dispose()


class MetricsProvider(Provider):
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        super().__init__()
        self._registry = registry

    @provide(scope=Scope.APP)
    def provide_metrics(self) -> MappingMetrics:
        return MappingMetrics(registry=self._registry)


class MappingProvider(Provider):
    @provide(scope=Scope.APP)
    def provide_mapping_repository(self, engine: AsyncEngine) -> MappingRepositoryProtocol:
        return PostgreSQLMappingRepositoryImpl(engine)

    @provide(scope=Scope.APP)
    def provide_segment_catalog(
        self, engine: AsyncEngine, settings: Settings
    ) -> SegmentCatalogProtocol:
        return PostGISSegmentCatalogImpl(engine, table=settings.SEGMENT_TABLE)

    @provide(scope=Scope.APP)
    def provide_bulk_write_strategies(
        self, engine: AsyncEngine, settings: Settings, metrics: MappingMetrics
    ) -> list[BulkWriteStrategy]:
        return create_all_strategies(engine, settings, metrics)

    @provide(scope=Scope.APP)
    def provide_segment_mapper(
        self,
        catalog: SegmentCatalogProtocol,
        repository: MappingRepositoryProtocol,
        strategies: list[BulkWriteStrategy],
        settings: Settings,
        metrics: MappingMetrics,
    ) -> SegmentMapper:
        by_kind = {strategy.kind: strategy for strategy in strategies}
        return SegmentMapper(
            catalog=catalog,
            repository=repository,
            fast_strategy=by_kind[BulkWriteStrategyKind.COPY_STREAM],
            fallback_strategy=by_kind[BulkWriteStrategyKind.ORM_CHUNKED],
            settings=settings,
            metrics=metrics,
        )


def create_container(
    settings: Optional[Settings] = None, registry: Optional[CollectorRegistry] = None
) -> AsyncContainer:
    """Build the application container; close it to dispose the engine."""
    return make_async_container(
        ServiceProvider(settings),
        DatabaseProvider(),
        MetricsProvider(registry),
        MappingProvider(),
    )
