"""Implementations module for Course Mapping Service."""

from .mapping_repository_postgres_impl import PostgreSQLMappingRepositoryImpl
from .segment_catalog_postgis_impl import PostGISSegmentCatalogImpl
from .segment_mapper_impl import MappingOutcome, MappingState, SegmentMapper

__all__ = [
    "MappingOutcome",
    "MappingState",
    "PostGISSegmentCatalogImpl",
    "PostgreSQLMappingRepositoryImpl",
    "SegmentMapper",
]
