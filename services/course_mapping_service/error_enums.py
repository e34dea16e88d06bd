"""
course_mapping_service.error_enums - Error code definitions for the mapping core.
"""

from __future__ import annotations

from enum import Enum


class CourseMappingErrorCode(str, Enum):
    """
    Specific error codes for the Course Mapping Service.
    """

    STRATEGY_WRITE_FAILURE = "STRATEGY_WRITE_FAILURE"
    MAPPING_SOURCE_UNAVAILABLE = "MAPPING_SOURCE_UNAVAILABLE"
    MAPPING_FAILED = "MAPPING_FAILED"
    BENCHMARK_ACTION_FAILURE = "BENCHMARK_ACTION_FAILURE"
    ILLEGAL_INPUT = "ILLEGAL_INPUT"
    COURSE_NOT_FOUND = "COURSE_NOT_FOUND"
