"""Shared fixtures for the jigsaw engine tests."""

from typing import Generator

import pytest

from jigsaw_engine.boolean_ops import FallbackEngine, reset_geometry_engine
from jigsaw_engine.config import get_engine_settings
from jigsaw_engine.shapely_engine import ShapelyEngine


@pytest.fixture(autouse=True)
def fresh_engine() -> Generator[None, None, None]:
    """Forget the process-wide engine and cached settings around each test."""
    reset_geometry_engine()
    get_engine_settings.cache_clear()
    yield
    reset_geometry_engine()
    get_engine_settings.cache_clear()


@pytest.fixture
def shapely_engine() -> ShapelyEngine:
    return ShapelyEngine()


@pytest.fixture
def fallback_engine() -> FallbackEngine:
    return FallbackEngine(reason="test")
