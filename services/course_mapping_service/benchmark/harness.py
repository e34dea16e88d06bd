"""
Benchmark harness.

Runs every registered method against every configured data size, in
registration order:

    for each size:
        for each method:
            warmup_runs x (setup, action, cleanup)   # discarded
            setup
            sampler.start(); action(size); sampler.end()
            cleanup
        pass-boundary hook (setup by default, see PassBoundary)

Hooks must therefore be idempotent when called back to back. A failing
action aborts the whole run with BenchmarkActionFailure.

Example::

    benchmark = PerformanceBenchmark(
        config=BenchmarkConfig(name="Bulk insert comparison"),
        setup_before_each=clear_mappings,
    )
    benchmark.add_method(
        BenchmarkMethod(name="COPY", query_count=lambda size: 1, action=insert_with_copy)
    )
    results = await benchmark.run()
    print_table(results)
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from services.course_mapping_service.benchmark.metrics_sampler import PerformanceMetrics
from services.course_mapping_service.benchmark.models import (
    BenchmarkConfig,
    BenchmarkMethod,
    BenchmarkResult,
    PassBoundary,
)
from services.course_mapping_service.exceptions import BenchmarkActionFailure, IllegalInputError
from services.course_mapping_service.logging_utils import create_service_logger

logger = create_service_logger("course_mapping_service.benchmark.harness")

Hook = Callable[[], Awaitable[None]]
SamplerFactory = Callable[[], PerformanceMetrics]


class PerformanceBenchmark:
    def __init__(
        self,
        config: BenchmarkConfig,
        setup_before_each: Optional[Hook] = None,
        cleanup_after_each: Optional[Hook] = None,
        sampler_factory: Optional[SamplerFactory] = None,
    ) -> None:
        self.config = config
        self.setup_before_each = setup_before_each
        self.cleanup_after_each = cleanup_after_each
        self.sampler_factory: SamplerFactory = sampler_factory or PerformanceMetrics
        self._methods: list[BenchmarkMethod] = []

    @property
    def methods(self) -> tuple[BenchmarkMethod, ...]:
        return tuple(self._methods)

    def add_method(self, method: BenchmarkMethod) -> None:
        self._methods.append(method)

    def add_methods(self, *methods: BenchmarkMethod) -> None:
        self._methods.extend(methods)

    async def _setup(self) -> None:
        if self.setup_before_each is not None:
            await self.setup_before_each()

    async def _cleanup(self) -> None:
        if self.cleanup_after_each is not None:
            await self.cleanup_after_each()

    async def _execute(self, method: BenchmarkMethod, size: int) -> None:
        try:
            await method.action(size)
        except Exception as e:
            logger.error(
                "Benchmark action failed, aborting run",
                benchmark=self.config.name,
                method=method.name,
                data_size=size,
                error_type=e.__class__.__name__,
            )
            raise BenchmarkActionFailure(method.name, size) from e

    async def _measure(self, method: BenchmarkMethod, size: int) -> BenchmarkResult:
        for _ in range(self.config.warmup_runs):
            await self._setup()
            await self._execute(method, size)
            await self._cleanup()

        query_count = method.query_count(size)
        network = method.network_description(size) if method.network_description else None

        await self._setup()
        sampler = self.sampler_factory()
        await sampler.start()
        await self._execute(method, size)
        performance = sampler.end(query_count=query_count, network_round_trips=network)
        await self._cleanup()

        logger.info(
            "Benchmark method measured",
            method=method.name,
            data_size=size,
            execution_time_ms=round(performance.execution_time_ms, 2),
            memory_used_mb=round(performance.memory_used_mb, 2),
            cpu_usage_percent=round(performance.cpu_usage_percent, 2),
            query_count=query_count,
        )
        return BenchmarkResult(method_name=method.name, data_size=size, performance=performance)

    async def run(self) -> dict[int, list[BenchmarkResult]]:
        if not self._methods:
            raise IllegalInputError(f"Benchmark '{self.config.name}' has no methods registered")

        logger.info(
            "Benchmark started",
            benchmark=self.config.name,
            data_sizes=list(self.config.data_sizes),
            methods=[method.name for method in self._methods],
            warmup_runs=self.config.warmup_runs,
        )

        all_results: dict[int, list[BenchmarkResult]] = {}
        for size in self.config.data_sizes:
            logger.info("Benchmark pass started", benchmark=self.config.name, data_size=size)
            all_results[size] = [await self._measure(method, size) for method in self._methods]

            if self.config.pass_boundary is PassBoundary.SETUP:
                await self._setup()
            else:
                await self._cleanup()

        logger.info("Benchmark finished", benchmark=self.config.name)
        return all_results
