"""Test module for application configuration."""

import os
import sys
from typing import Generator

import pytest


@pytest.fixture
def cleanup_imports() -> Generator[None, None, None]:
    """Clean up app.config imports after each test."""
    yield
    # Remove app.config modules from sys.modules to allow fresh imports
    modules_to_remove = [key for key in sys.modules.keys() if key.startswith("app.config")]
    for module in modules_to_remove:
        del sys.modules[module]


def test_default_settings(cleanup_imports: None) -> None:
    """Test the defaults used when no environment is set."""
    from app.config import Settings

    settings = Settings()
    assert settings.API_V1_STR == "/api/v1"
    assert settings.BACKEND_CORS_ORIGINS == ["*"]
    assert settings.LOG_LEVEL == "INFO"


def test_settings_from_environment(cleanup_imports: None) -> None:
    """Test that environment variables override the defaults."""
    os.environ["PROJECT_NAME"] = "Workshop Puzzles"
    os.environ["LOG_LEVEL"] = "DEBUG"

    try:
        from app.config import Settings

        settings = Settings()
        assert settings.PROJECT_NAME == "Workshop Puzzles"
        assert settings.LOG_LEVEL == "DEBUG"
    finally:
        os.environ.pop("PROJECT_NAME", None)
        os.environ.pop("LOG_LEVEL", None)


def test_get_settings_is_cached(cleanup_imports: None) -> None:
    """Test that get_settings returns a single instance."""
    from app.config import get_settings

    assert get_settings() is get_settings()
