"""Main FastAPI application module for the jigsaw engine."""

import logging

from app.config import settings
from app.models.jigsaw_model import EngineResponse, GenerateResponse, PresetsResponse
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from jigsaw_engine import ConfigurationError, GeometryEngineError, PuzzleSettings, generate_puzzle, load_geometry_engine
from jigsaw_engine.settings import FIT_MODE_CLEARANCE, LIMITS, SHEET_PRESETS
from jigsaw_engine.templates import TEMPLATE_NAMES

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title=settings.PROJECT_NAME)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get(f"{settings.API_V1_STR}/jigsaw/presets", response_model=PresetsResponse)
def get_presets() -> PresetsResponse:
    """List sheet presets, fit modes, templates and input limits."""
    return PresetsResponse(
        sheet_presets={name: [w, h] for name, (w, h) in SHEET_PRESETS.items()},
        fit_modes={mode.value: clearance for mode, clearance in FIT_MODE_CLEARANCE.items()},
        templates=dict(TEMPLATE_NAMES),
        limits=LIMITS,
    )


@app.get(f"{settings.API_V1_STR}/jigsaw/engine", response_model=EngineResponse)
async def get_engine() -> EngineResponse:
    """Describe the geometry engine, loading it on first use."""
    engine = await load_geometry_engine()
    return EngineResponse(name=engine.name, precise=engine.precise, warnings=list(engine.warnings))


@app.post(f"{settings.API_V1_STR}/jigsaw/generate", response_model=GenerateResponse)
async def generate(request: PuzzleSettings) -> GenerateResponse:
    """Generate a puzzle cut file.

    Args:
        request: Puzzle configuration.

    Returns:
        GenerateResponse: SVG document, pieces, layout and diagnostics.

    Raises:
        HTTPException: If the configuration is rejected or geometry fails.
    """
    engine = await load_geometry_engine()
    try:
        output = generate_puzzle(request, engine)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GeometryEngineError as e:
        logger.error(f"Generation failed: {e}")
        raise HTTPException(status_code=500, detail="Geometry engine failure")

    logger.info(
        f"Generated {output.diagnostics.piece_count} pieces in {output.diagnostics.generation_time_ms:.1f}ms"
    )
    return GenerateResponse(**output.to_dict())
