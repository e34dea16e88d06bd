"""Metrics definitions for the Course Mapping Service."""

from __future__ import annotations

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from services.course_mapping_service.logging_utils import create_service_logger

logger = create_service_logger("course_mapping_service.metrics")


class MappingMetrics:
    """A container for all Prometheus metrics for the mapping core."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        registry = registry if registry is not None else REGISTRY

        # Bulk write metrics
        self.bulk_write_duration_seconds = Histogram(
            "cms_bulk_write_duration_seconds",
            "Duration of a single bulk-write strategy call.",
            ["strategy"],
            registry=registry,
        )
        self.bulk_write_rows_total = Counter(
            "cms_bulk_write_rows_total",
            "Total number of association rows written.",
            ["strategy"],
            registry=registry,
        )
        self.bulk_write_failures_total = Counter(
            "cms_bulk_write_failures_total",
            "Total number of failed bulk-write strategy calls.",
            ["strategy"],
            registry=registry,
        )

        # Mapping metrics
        self.mapping_runs_total = Counter(
            "cms_segment_mapping_runs_total",
            "Total number of course segment mapping runs by outcome.",
            ["outcome"],
            registry=registry,
        )
        self.mapping_fallbacks_total = Counter(
            "cms_segment_mapping_fallbacks_total",
            "Total number of times the fast write path fell back to the safe path.",
            registry=registry,
        )
        logger.debug("Mapping metrics registered")

    def record_bulk_write(self, strategy: str, rows: int, duration: float, success: bool) -> None:
        self.bulk_write_duration_seconds.labels(strategy=strategy).observe(duration)
        if success:
            self.bulk_write_rows_total.labels(strategy=strategy).inc(rows)
        else:
            self.bulk_write_failures_total.labels(strategy=strategy).inc()

    def record_mapping_run(self, outcome: str) -> None:
        self.mapping_runs_total.labels(outcome=outcome).inc()

    def record_fallback(self) -> None:
        self.mapping_fallbacks_total.inc()

