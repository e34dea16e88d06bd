from __future__ import annotations

import re
from typing import Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from services.course_mapping_service.exceptions import IllegalInputError
from services.course_mapping_service.logging_utils import create_service_logger
from services.course_mapping_service.protocols import Coordinate, SegmentCatalogProtocol

logger = create_service_logger("course_mapping_service.segment_catalog")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def build_linestring_wkt(path: Sequence[Coordinate]) -> str:
    """Render an ordered [lon, lat] path as a WKT LINESTRING."""
    if len(path) < 2:
        raise IllegalInputError(f"A course path needs at least 2 coordinates, got {len(path)}")
    points = []
    for coordinate in path:
        if len(coordinate) != 2:
            raise IllegalInputError(f"Coordinate must be a [lon, lat] pair: {coordinate!r}")
        lon, lat = (float(value) for value in coordinate)
        points.append(f"{lon!r} {lat!r}")
    return f"LINESTRING({', '.join(points)})"


class PostGISSegmentCatalogImpl(SegmentCatalogProtocol):
    """Segment catalog backed by a PostGIS table of (gid, coordinate geometry)."""

    def __init__(self, engine: AsyncEngine, table: str = "walkroads") -> None:
        if not _IDENTIFIER.match(table):
            raise IllegalInputError(f"Invalid segment table name: {table!r}")
        self.engine = engine
        self.table = table
        self._query = text(
            f"""
            SELECT gid
            FROM {table}
            WHERE ST_DWithin(coordinate, ST_SetSRID(ST_GeomFromText(:line), 4326), :threshold)
            ORDER BY ST_Distance(coordinate, ST_SetSRID(ST_GeomFromText(:line), 4326)), gid
            LIMIT :limit
            """
        )

    async def find_nearby_segment_ids(
        self, path: Sequence[Coordinate], threshold: float, limit: int
    ) -> list[int]:
        line = build_linestring_wkt(path)
        async with self.engine.connect() as conn:
            result = await conn.execute(
                self._query, {"line": line, "threshold": threshold, "limit": limit}
            )
            gids = list(result.scalars().all())

        logger.debug("Spatial segment query finished", candidates=len(gids), table=self.table)
        return gids
