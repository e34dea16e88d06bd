"""Test package for Course Mapping Service.

Unit tests mock at protocol boundaries; integration and performance tests run
against a PostGIS testcontainer.
"""

from typing import List

__all__: List[str] = []
