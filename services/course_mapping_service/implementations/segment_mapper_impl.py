"""
Course segment mapping.

For a course, query the spatial catalog for nearby segments, drop duplicates
and segments that are already associated with the course, then persist the
rest. The COPY path is tried first; if it fails, the whole remaining set is
written again through the ORM path. Both paths are all-or-nothing, so the
retry cannot produce duplicate rows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from services.course_mapping_service.config import Settings
from services.course_mapping_service.exceptions import (
    CourseMappingServiceError,
    IllegalInputError,
    MappingFailedError,
    MappingSourceUnavailable,
    StrategyWriteFailure,
)
from services.course_mapping_service.logging_utils import (
    bind_course_context,
    clear_course_context,
    create_service_logger,
)
from services.course_mapping_service.metrics import MappingMetrics
from services.course_mapping_service.models_db import Course
from services.course_mapping_service.protocols import (
    BulkWriteStrategyProtocol,
    MappingRepositoryProtocol,
    SegmentCatalogProtocol,
)

logger = create_service_logger("course_mapping_service.mapper")


class MappingState(str, Enum):
    QUERIED = "queried"
    DEDUPED = "deduped"
    EMPTY = "empty"
    WRITE_FAST = "write_fast"
    WRITE_FAST_FAILED = "write_fast_failed"
    WRITE_FALLBACK = "write_fallback"
    FALLBACK_FAILED = "fallback_failed"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class MappingOutcome:
    """Result of one mapper invocation for one course."""

    course_id: uuid.UUID
    state: MappingState
    candidate_count: int = 0
    unique_candidate_count: int = 0
    new_segment_gids: tuple[int, ...] = ()
    written: int = 0
    strategy_used: Optional[str] = None
    fell_back: bool = False
    states: tuple[MappingState, ...] = field(default_factory=tuple)


def _validate_candidates(course_id: uuid.UUID, candidates: Any) -> list[int]:
    if not isinstance(candidates, (list, tuple)):
        raise MappingSourceUnavailable(
            course_id, f"expected a list of segment ids, got {type(candidates).__name__}"
        )
    for gid in candidates:
        if isinstance(gid, bool) or not isinstance(gid, int):
            raise MappingSourceUnavailable(course_id, f"malformed segment id {gid!r}")
    return list(candidates)


def _kind_label(kind: Any) -> str:
    return str(getattr(kind, "value", kind))


class SegmentMapper:
    """Maps catalog segments to a course with a fast path and a safe fallback."""

    def __init__(
        self,
        catalog: SegmentCatalogProtocol,
        repository: MappingRepositoryProtocol,
        fast_strategy: BulkWriteStrategyProtocol,
        fallback_strategy: BulkWriteStrategyProtocol,
        settings: Settings,
        metrics: Optional[MappingMetrics] = None,
    ) -> None:
        self.catalog = catalog
        self.repository = repository
        self.fast_strategy = fast_strategy
        self.fallback_strategy = fallback_strategy
        self.threshold = settings.SEGMENT_PROXIMITY_THRESHOLD
        self.limit = settings.SEGMENT_CANDIDATE_LIMIT
        self.metrics = metrics
        self.last_outcome: Optional[MappingOutcome] = None

    async def map_segments_to_course(self, course: Course) -> MappingOutcome:
        bind_course_context(course.id)
        try:
            return await self._map(course)
        finally:
            clear_course_context()

    async def _query_candidates(self, course: Course) -> list[int]:
        try:
            candidates = await self.catalog.find_nearby_segment_ids(
                course.path, self.threshold, self.limit
            )
        except IllegalInputError:
            raise
        except Exception as e:
            logger.error("Spatial segment query failed", error_type=e.__class__.__name__)
            raise MappingSourceUnavailable(course.id, f"{e.__class__.__name__}: {e}") from e
        return _validate_candidates(course.id, candidates)

    async def _map(self, course: Course) -> MappingOutcome:
        logger.info("Course segment mapping started")
        states: list[MappingState] = []

        try:
            candidates = await self._query_candidates(course)
        except CourseMappingServiceError:
            self._finish(course.id, MappingState.ERROR, states, outcome_label="source_error")
            raise
        states.append(MappingState.QUERIED)
        logger.info("Spatial query returned candidates", candidates=len(candidates))

        unique_candidates = list(dict.fromkeys(candidates))
        existing = await self.repository.get_segment_gids_for_course(course.id)
        new_gids = tuple(gid for gid in unique_candidates if gid not in existing)
        states.append(MappingState.DEDUPED)
        logger.info(
            "Candidates deduplicated",
            unique_candidates=len(unique_candidates),
            already_mapped=len(existing),
            new_segments=len(new_gids),
        )

        counts = {
            "candidate_count": len(candidates),
            "unique_candidate_count": len(unique_candidates),
            "new_segment_gids": new_gids,
        }

        if not new_gids:
            states.append(MappingState.EMPTY)
            logger.info("No new segments, mapping finished without writes")
            return self._finish(
                course.id, MappingState.DONE, states, outcome_label="empty", **counts
            )

        states.append(MappingState.WRITE_FAST)
        try:
            written = await self.fast_strategy.write(course.id, new_gids)
            strategy_used = self.fast_strategy.kind
            fell_back = False
        except StrategyWriteFailure as fast_error:
            states.append(MappingState.WRITE_FAST_FAILED)
            logger.warning(
                "Fast write path failed, falling back",
                fast_strategy=_kind_label(self.fast_strategy.kind),
                fallback_strategy=_kind_label(self.fallback_strategy.kind),
                error=fast_error.message,
            )
            if self.metrics:
                self.metrics.record_fallback()

            states.append(MappingState.WRITE_FALLBACK)
            try:
                written = await self.fallback_strategy.write(course.id, new_gids)
            except CourseMappingServiceError as fallback_error:
                states.append(MappingState.FALLBACK_FAILED)
                logger.error("Fallback write path failed", error=fallback_error.message)
                self._finish(course.id, MappingState.ERROR, states, outcome_label="error", **counts)
                if isinstance(fallback_error, IllegalInputError):
                    raise
                raise MappingFailedError(course.id, len(new_gids)) from fallback_error
            strategy_used = self.fallback_strategy.kind
            fell_back = True
        except CourseMappingServiceError as fast_error:
            logger.error("Fast write path rejected input", error=fast_error.message)
            self._finish(course.id, MappingState.ERROR, states, outcome_label="error", **counts)
            raise

        logger.info(
            "Course segment mapping finished",
            written=written,
            strategy=_kind_label(strategy_used),
            fell_back=fell_back,
        )
        return self._finish(
            course.id,
            MappingState.DONE,
            states,
            outcome_label="fallback" if fell_back else "written",
            written=written,
            strategy_used=_kind_label(strategy_used),
            fell_back=fell_back,
            **counts,
        )

    def _finish(
        self,
        course_id: uuid.UUID,
        state: MappingState,
        states: list[MappingState],
        outcome_label: str,
        **fields: Any,
    ) -> MappingOutcome:
        states.append(state)
        outcome = MappingOutcome(course_id=course_id, state=state, states=tuple(states), **fields)
        self.last_outcome = outcome
        if self.metrics:
            self.metrics.record_mapping_run(outcome_label)
        return outcome
