from functools import lru_cache

from pydantic_settings import BaseSettings


class EngineSettings(BaseSettings):
    """Process-level geometry engine settings."""

    # Backend selection: "auto" tries shapely and degrades to the fallback
    GEOMETRY_ENGINE: str = "auto"

    # Samples per curve segment when converting paths to polygons
    CURVE_RESOLUTION: int = 16

    # Segments per quarter circle for round offset joins
    OFFSET_RESOLUTION: int = 8

    # Tolerance (mm) for simplify after offset
    SIMPLIFY_TOLERANCE: float = 0.01

    class Config:
        """Pydantic configuration class."""

        case_sensitive = True
        env_prefix = "JIGSAW_"
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_engine_settings() -> EngineSettings:
    """Get cached engine settings instance."""
    return EngineSettings()
