from __future__ import annotations

import uuid
from typing import Awaitable, Callable, Optional, Sequence

from services.course_mapping_service.benchmark.models import BenchmarkMethod
from services.course_mapping_service.exceptions import IllegalInputError
from services.course_mapping_service.protocols import BulkWriteStrategyProtocol

Verifier = Callable[[int], Awaitable[None]]


def strategy_method(
    strategy: BulkWriteStrategyProtocol,
    course_id: uuid.UUID,
    segment_gids: Sequence[int],
    verify: Optional[Verifier] = None,
) -> BenchmarkMethod:
    """Wrap a bulk-write strategy as a benchmark method writing the first `size` gids."""

    async def action(size: int) -> None:
        if size > len(segment_gids):
            raise IllegalInputError(
                f"Data size {size} exceeds the {len(segment_gids)} available segment gids"
            )
        await strategy.write(course_id, segment_gids[:size])
        if verify is not None:
            await verify(size)

    return BenchmarkMethod(
        name=strategy.display_name,
        query_count=strategy.expected_round_trips,
        action=action,
        network_description=lambda size: f"{strategy.expected_round_trips(size)} round trips",
    )


def build_strategy_methods(
    strategies: Sequence[BulkWriteStrategyProtocol],
    course_id: uuid.UUID,
    segment_gids: Sequence[int],
    verify: Optional[Verifier] = None,
) -> list[BenchmarkMethod]:
    return [strategy_method(strategy, course_id, segment_gids, verify) for strategy in strategies]
