"""
Point-in-time resource sampling around a measured block.

`start()` forces a full garbage collection and pauses briefly before taking
the baseline, so memory deltas reflect the workload rather than collector
timing. CPU time is read from the calling thread's CPU clock. Where the
platform has no per-thread clock, the process CPU times reported by psutil
are used and the result is tagged `CpuTimeScope.PROCESS`. If neither is
available, CPU figures are 0 and tagged `CpuTimeScope.UNSUPPORTED`.

A sampler is not re-entrant: calling `start()` twice overwrites the baseline.
"""

from __future__ import annotations

import asyncio
import gc
import os
import time
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

import psutil

from services.course_mapping_service.benchmark.models import CpuTimeScope, PerformanceResult
from services.course_mapping_service.logging_utils import create_service_logger

logger = create_service_logger("course_mapping_service.benchmark.sampler")

T = TypeVar("T")

BYTES_PER_MB = 1024 * 1024
NS_PER_MS = 1_000_000


def compute_cpu_usage_percent(cpu_time_ms: float, wall_time_ms: float) -> float:
    """CPU time over wall time as a percentage, clamped to [0, 100]; 0 for zero wall time."""
    if wall_time_ms <= 0:
        return 0.0
    return min(max(cpu_time_ms / wall_time_ms * 100, 0.0), 100.0)


def select_cpu_clock(process: psutil.Process) -> Tuple[Callable[[], int], CpuTimeScope]:
    """Return a nanosecond CPU clock and the scope it measures."""
    try:
        time.thread_time_ns()
        return time.thread_time_ns, CpuTimeScope.THREAD
    except (AttributeError, OSError):
        pass

    def process_cpu_ns() -> int:
        times = process.cpu_times()
        return int((times.user + times.system) * 1_000_000_000)

    try:
        process_cpu_ns()
        return process_cpu_ns, CpuTimeScope.PROCESS
    except (psutil.Error, OSError):
        return (lambda: 0), CpuTimeScope.UNSUPPORTED


class PerformanceMetrics:
    """Measures wall time, RSS delta and CPU time between start() and end()."""

    def __init__(
        self, settle_seconds: float = 0.1, process: Optional[psutil.Process] = None
    ) -> None:
        self.settle_seconds = settle_seconds
        self._process = process if process is not None else psutil.Process(os.getpid())
        self._cpu_clock, self.cpu_time_scope = select_cpu_clock(self._process)
        if self.cpu_time_scope is not CpuTimeScope.THREAD:
            logger.warning(
                "Per-thread CPU time unavailable, using fallback",
                cpu_time_scope=self.cpu_time_scope.value,
            )

        self._started = False
        self._before_memory = 0
        self._before_cpu_ns = 0
        self._start_ns = 0

    def _memory_bytes(self) -> int:
        return int(self._process.memory_info().rss)

    async def start(self) -> None:
        gc.collect()
        if self.settle_seconds > 0:
            await asyncio.sleep(self.settle_seconds)

        self._before_memory = self._memory_bytes()
        self._before_cpu_ns = self._cpu_clock()
        self._start_ns = time.perf_counter_ns()
        self._started = True

    def end(
        self, query_count: int = 0, network_round_trips: Optional[str] = None
    ) -> PerformanceResult:
        if not self._started:
            raise RuntimeError("PerformanceMetrics.end() called before start()")

        execution_time_ms = (time.perf_counter_ns() - self._start_ns) / NS_PER_MS
        cpu_time_ms = max(self._cpu_clock() - self._before_cpu_ns, 0) / NS_PER_MS
        memory_used_mb = (self._memory_bytes() - self._before_memory) / BYTES_PER_MB

        return PerformanceResult(
            execution_time_ms=execution_time_ms,
            memory_used_mb=memory_used_mb,
            cpu_time_ms=cpu_time_ms,
            cpu_usage_percent=compute_cpu_usage_percent(cpu_time_ms, execution_time_ms),
            query_count=query_count,
            cpu_time_scope=self.cpu_time_scope,
            network_round_trips=network_round_trips,
        )

    async def measure(
        self, block: Callable[[], Awaitable[T]], query_count: int = 0
    ) -> Tuple[T, PerformanceResult]:
        """Run `block` between start() and end() and return its value with the metrics."""
        await self.start()
        value = await block()
        return value, self.end(query_count)
