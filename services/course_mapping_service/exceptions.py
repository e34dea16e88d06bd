"""Custom exception classes for Course Mapping Service."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from services.course_mapping_service.error_enums import CourseMappingErrorCode


class CourseMappingServiceError(Exception):
    """Base exception for Course Mapping Service errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class IllegalInputError(CourseMappingServiceError):
    """Raised when a caller passes input the core cannot act on."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message, error_code or CourseMappingErrorCode.ILLEGAL_INPUT.value)


class CourseNotFoundError(IllegalInputError):
    """Raised when a course id does not exist in the store."""

    def __init__(self, course_id: Any) -> None:
        super().__init__(
            f"Course not found: {course_id}", CourseMappingErrorCode.COURSE_NOT_FOUND.value
        )
        self.course_id = course_id


class StrategyWriteFailure(CourseMappingServiceError):
    """Raised when a bulk-write strategy could not complete its full input.

    Strategies write inside one transaction, so no rows of the attempted
    input are left behind when this is raised.
    """

    def __init__(
        self,
        strategy: str,
        course_id: UUID,
        attempted_rows: int,
        reason: str | None = None,
    ) -> None:
        message = f"Bulk write via {strategy} failed for course {course_id} ({attempted_rows} rows)"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, CourseMappingErrorCode.STRATEGY_WRITE_FAILURE.value)
        self.strategy = strategy
        self.course_id = course_id
        self.attempted_rows = attempted_rows


class MappingSourceUnavailable(CourseMappingServiceError):
    """Raised when the spatial segment query failed or returned malformed data."""

    def __init__(self, course_id: UUID, reason: str) -> None:
        super().__init__(
            f"Segment source unavailable for course {course_id}: {reason}",
            CourseMappingErrorCode.MAPPING_SOURCE_UNAVAILABLE.value,
        )
        self.course_id = course_id
        self.reason = reason


class MappingFailedError(CourseMappingServiceError):
    """Raised when both the fast and the fallback write paths failed."""

    def __init__(self, course_id: UUID, attempted_rows: int) -> None:
        super().__init__(
            f"Segment mapping failed for course {course_id} after fallback "
            f"({attempted_rows} rows)",
            CourseMappingErrorCode.MAPPING_FAILED.value,
        )
        self.course_id = course_id
        self.attempted_rows = attempted_rows


class BenchmarkActionFailure(CourseMappingServiceError):
    """Raised when a benchmarked method's action fails; the whole run is aborted."""

    def __init__(self, method_name: str, data_size: int) -> None:
        super().__init__(
            f"Benchmark method '{method_name}' failed at data size {data_size}",
            CourseMappingErrorCode.BENCHMARK_ACTION_FAILURE.value,
        )
        self.method_name = method_name
        self.data_size = data_size
