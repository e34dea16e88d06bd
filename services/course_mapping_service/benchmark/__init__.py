"""Benchmarking of bulk-write strategies: sampling, harness and reporting."""

from services.course_mapping_service.benchmark.harness import PerformanceBenchmark
from services.course_mapping_service.benchmark.methods import build_strategy_methods
from services.course_mapping_service.benchmark.metrics_sampler import (
    PerformanceMetrics,
    compute_cpu_usage_percent,
)
from services.course_mapping_service.benchmark.models import (
    BenchmarkConfig,
    BenchmarkMethod,
    BenchmarkResult,
    CpuTimeScope,
    PassBoundary,
    PerformanceResult,
)

__all__ = [
    "BenchmarkConfig",
    "BenchmarkMethod",
    "BenchmarkResult",
    "CpuTimeScope",
    "PassBoundary",
    "PerformanceBenchmark",
    "PerformanceMetrics",
    "PerformanceResult",
    "build_strategy_methods",
    "compute_cpu_usage_percent",
]
