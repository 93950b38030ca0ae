"""Deterministic geometry engine for laser-cut jigsaw puzzles."""

from .boolean_ops import (
    FallbackEngine,
    GeometryEngine,
    PathArena,
    PathHandle,
    get_geometry_engine,
    load_geometry_engine,
    reset_geometry_engine,
)
from .edge_map import Edge, EdgeKey, SharedEdgeMap, generate_shared_edge_map
from .exceptions import ConfigurationError, GeometryEngineError, JigsawEngineError, ReleasedHandleError
from .generator import JigsawOutput, generate_puzzle, generate_puzzle_async
from .knobs import KnobSpec, KnobStyle
from .layout import LayoutResult, Placement
from .models import BezierCurve, CurvePath, Piece
from .rng import SeededRandom, derive_seed
from .settings import LayoutMode, NestingSettings, PuzzleSettings
from .templates import TemplateShape

__all__ = [
    # Generation
    "generate_puzzle",
    "generate_puzzle_async",
    "JigsawOutput",
    "PuzzleSettings",
    "NestingSettings",
    "LayoutMode",
    "TemplateShape",
    "KnobSpec",
    "KnobStyle",
    # Geometry
    "BezierCurve",
    "CurvePath",
    "Piece",
    "Edge",
    "EdgeKey",
    "SharedEdgeMap",
    "generate_shared_edge_map",
    "LayoutResult",
    "Placement",
    # Randomness
    "SeededRandom",
    "derive_seed",
    # Geometry engine
    "GeometryEngine",
    "FallbackEngine",
    "PathArena",
    "PathHandle",
    "get_geometry_engine",
    "load_geometry_engine",
    "reset_geometry_engine",
    # Errors
    "JigsawEngineError",
    "ConfigurationError",
    "GeometryEngineError",
    "ReleasedHandleError",
]
