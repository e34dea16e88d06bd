"""Value objects for the benchmark harness."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CpuTimeScope(str, Enum):
    """Which clock the CPU figures of a PerformanceResult come from."""

    THREAD = "thread"
    PROCESS = "process"
    UNSUPPORTED = "unsupported"


class PassBoundary(str, Enum):
    """Hook invoked once after all methods of a data size have run.

    SETUP reproduces the historical reports, where the final cleanup of a
    size is the setup hook called one extra time. CLEANUP calls the cleanup
    hook instead.
    """

    SETUP = "setup"
    CLEANUP = "cleanup"


class BenchmarkConfig(BaseModel):
    name: str
    data_sizes: tuple[int, ...] = (100, 500, 1000)
    # Discarded runs before the measured one, to reach steady-state performance
    warmup_runs: int = Field(default=0, ge=0)
    pass_boundary: PassBoundary = PassBoundary.SETUP

    model_config = ConfigDict(frozen=True)

    @field_validator("data_sizes")
    @classmethod
    def _validate_data_sizes(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if any(size < 0 for size in value):
            raise ValueError("data sizes must be non-negative")
        if len(set(value)) != len(value):
            raise ValueError("data sizes must be unique")
        return value


@dataclass(frozen=True)
class BenchmarkMethod:
    """A named action to benchmark, plus how many store round trips it makes per size."""

    name: str
    query_count: Callable[[int], int]
    action: Callable[[int], Awaitable[None]]
    network_description: Optional[Callable[[int], str]] = None


class PerformanceResult(BaseModel):
    """Resource usage of one measured run."""

    execution_time_ms: float = Field(ge=0)
    memory_used_mb: float
    cpu_time_ms: float = Field(ge=0)
    cpu_usage_percent: float = Field(ge=0, le=100)
    query_count: int = 0
    cpu_time_scope: CpuTimeScope = CpuTimeScope.THREAD
    network_round_trips: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def format(self) -> str:
        lines = [
            f"Execution time: {self.execution_time_ms:.2f}ms",
            f"Memory used: {self.memory_used_mb:.2f}MB",
            f"CPU time: {self.cpu_time_ms:.2f}ms ({self.cpu_time_scope.value})",
            f"CPU usage: {self.cpu_usage_percent:.2f}%",
        ]
        if self.query_count > 0:
            lines.append(f"Queries: {self.query_count}")
        if self.network_round_trips:
            lines.append(f"Network: {self.network_round_trips}")
        return "\n".join(lines) + "\n"


class BenchmarkResult(BaseModel):
    method_name: str
    data_size: int
    performance: PerformanceResult

    model_config = ConfigDict(frozen=True)
