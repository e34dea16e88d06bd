from __future__ import annotations

import uuid
from typing import Protocol, Sequence

from services.course_mapping_service.models_db import Course, CourseSegmentMapping

Coordinate = Sequence[float]


class SegmentCatalogProtocol(Protocol):
    """Protocol for the external spatial segment catalog."""

    async def find_nearby_segment_ids(
        self, path: Sequence[Coordinate], threshold: float, limit: int
    ) -> list[int]:
        """Return segment ids within `threshold` of `path`, nearest first, at most `limit`."""
        ...


class MappingRepositoryProtocol(Protocol):
    """Protocol for reads and maintenance of course segment associations."""

    async def get_course(self, course_id: uuid.UUID) -> Course | None: ...

    async def get_segment_gids_for_course(self, course_id: uuid.UUID) -> set[int]: ...

    async def find_by_course_id(self, course_id: uuid.UUID) -> list[CourseSegmentMapping]: ...

    async def count_for_course(self, course_id: uuid.UUID) -> int: ...

    async def delete_by_course_id(self, course_id: uuid.UUID) -> int:
        """Delete all associations of a course and return the number of rows removed."""
        ...


class BulkWriteStrategyProtocol(Protocol):
    """Protocol shared by every bulk-write strategy.

    `write` inserts exactly one association row per supplied segment id, or
    raises and leaves none of them behind.
    """

    @property
    def kind(self) -> str: ...

    @property
    def display_name(self) -> str: ...

    def expected_round_trips(self, size: int) -> int: ...

    async def write(self, course_id: uuid.UUID, segment_gids: Sequence[int]) -> int: ...
