"""Course Mapping Service.

Maps spatial catalog segments onto user-drawn courses and benchmarks the
bulk-write strategies used to persist those associations.
"""

from services.course_mapping_service.config import Settings, settings
from services.course_mapping_service.exceptions import (
    BenchmarkActionFailure,
    CourseMappingServiceError,
    CourseNotFoundError,
    IllegalInputError,
    MappingFailedError,
    MappingSourceUnavailable,
    StrategyWriteFailure,
)
from services.course_mapping_service.models_db import Course, CourseSegmentMapping
from services.course_mapping_service.protocols import (
    BulkWriteStrategyProtocol,
    MappingRepositoryProtocol,
    SegmentCatalogProtocol,
)

__all__ = [
    "Settings",
    "settings",
    # Exceptions
    "BenchmarkActionFailure",
    "CourseMappingServiceError",
    "CourseNotFoundError",
    "IllegalInputError",
    "MappingFailedError",
    "MappingSourceUnavailable",
    "StrategyWriteFailure",
    # Models
    "Course",
    "CourseSegmentMapping",
    # Protocols
    "BulkWriteStrategyProtocol",
    "MappingRepositoryProtocol",
    "SegmentCatalogProtocol",
]
