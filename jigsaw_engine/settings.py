"""Configuration models for puzzle generation."""

import enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError
from .knobs import KnobSpec, KnobStyle
from .rng import MASK_32
from .templates import TemplateShape


class LayoutMode(str, enum.Enum):
    """Where finished pieces are placed on the output canvas."""

    ASSEMBLED = "assembled"
    PACKED = "packed"
    TRUE_NESTING = "true-nesting"


class FitMode(str, enum.Enum):
    TIGHT = "tight"
    NORMAL = "normal"
    LOOSE = "loose"


class ExportMode(str, enum.Enum):
    """How cut geometry is written into the document."""

    PIECE_OUTLINES = "piece-outlines"
    CUT_LINES = "cut-lines"


class Construction(str, enum.Enum):
    """How piece outlines are built."""

    CURVES = "curves"
    BOOLEAN = "boolean"


class RotationSet(str, enum.Enum):
    NONE = "none"
    HALF = "0-180"
    QUARTER = "0-90-180-270"


class NestingStrategy(str, enum.Enum):
    FAST = "fast"
    BALANCED = "balanced"
    MAXIMIZE_SAVING = "maximize-saving"


class CollisionCheck(str, enum.Enum):
    """Narrow-phase collision test used by true nesting."""

    VERTEX_DISTANCE = "vertex-distance"
    EXACT = "exact"


# Clearance (mm) for each fit preset
FIT_MODE_CLEARANCE: Dict[FitMode, float] = {
    FitMode.TIGHT: -0.05,
    FitMode.NORMAL: 0.0,
    FitMode.LOOSE: 0.05,
}

# Sheet presets: name -> (width, height) in mm
SHEET_PRESETS: Dict[str, Tuple[float, float]] = {
    "glowforge-basic": (495.0, 279.0),
    "glowforge-pro": (838.0, 495.0),
    "xtool-d1": (400.0, 400.0),
    "300x400": (300.0, 400.0),
    "600x400": (600.0, 400.0),
}

CUSTOM_SHEET = "custom"

ROTATION_ANGLES: Dict[RotationSet, Tuple[int, ...]] = {
    RotationSet.NONE: (0,),
    RotationSet.HALF: (0, 180),
    RotationSet.QUARTER: (0, 90, 180, 270),
}

# Input limits
LIMITS = {
    "width_mm": {"min": 50.0, "max": 1000.0},
    "height_mm": {"min": 50.0, "max": 1000.0},
    "rows": {"min": 2, "max": 20},
    "columns": {"min": 2, "max": 20},
    "kerf_mm": {"min": 0.0, "max": 0.5},
    "clearance_mm": {"min": -0.3, "max": 0.3},
    "min_piece_size_mm": 15.0,
}


class NestingSettings(BaseModel):
    """Options for true-shape nesting."""

    rotation_set: RotationSet = Field(default=RotationSet.NONE, description="Allowed piece rotations")
    density: int = Field(default=5, ge=1, le=10, description="Higher density uses a finer candidate grid")
    min_gap_mm: float = Field(default=1.5, ge=0.0, description="Minimum distance between placed pieces")
    strategy: NestingStrategy = Field(default=NestingStrategy.BALANCED)
    max_attempts: int = Field(default=1000, ge=1, description="Scored candidates per rotation, capped at 100")
    scatter: bool = Field(default=False, description="Shuffle placement order with the seeded RNG")
    collision_check: CollisionCheck = Field(default=CollisionCheck.VERTEX_DISTANCE)

    @property
    def rotations(self) -> Tuple[int, ...]:
        return ROTATION_ANGLES[self.rotation_set]

    @property
    def grid_step(self) -> float:
        return max(5.0, 20.0 - self.density * 1.5)


class PuzzleSettings(BaseModel):
    """Full configuration for one generation call."""

    # Panel and grid
    width_mm: float = Field(default=200.0, ge=50.0, le=1000.0, description="Puzzle width in mm")
    height_mm: float = Field(default=150.0, ge=50.0, le=1000.0, description="Puzzle height in mm")
    rows: int = Field(default=4, ge=2, le=20, description="Number of piece rows")
    columns: int = Field(default=5, ge=2, le=20, description="Number of piece columns")
    seed: int = Field(default=12345, ge=-(2**31), le=MASK_32, description="Random seed (32-bit)")

    # Knobs
    knob_style: KnobStyle = KnobStyle.CLASSIC
    knob_size_pct: float = Field(default=65.0, ge=40.0, le=90.0)
    knob_roundness: float = Field(default=0.85, ge=0.6, le=1.0)
    knob_jitter: float = Field(default=0.15, ge=0.0, le=0.35)
    flat_ratio: float = Field(default=0.10, ge=0.06, le=0.18)
    difficulty: float = Field(default=0.0, ge=0.0, le=100.0)
    construction: Construction = Construction.CURVES

    # Cutting
    kerf_mm: float = Field(default=0.15, ge=0.0, le=0.5, description="Laser kerf width")
    clearance_mm: Optional[float] = Field(
        default=None, ge=-0.3, le=0.3, description="Explicit clearance; overrides fit_mode when set"
    )
    fit_mode: FitMode = FitMode.NORMAL

    # Shape
    template: TemplateShape = TemplateShape.RECTANGLE
    corner_radius_mm: float = Field(default=0.0, ge=0.0)
    center_cutout: bool = False
    center_cutout_ratio: float = Field(default=0.3, ge=0.1, le=0.8)

    # Layout
    layout_mode: LayoutMode = LayoutMode.ASSEMBLED
    sheet_preset: str = Field(default=CUSTOM_SHEET, description="Sheet preset name or 'custom'")
    sheet_width_mm: float = Field(default=500.0, gt=0.0)
    sheet_height_mm: float = Field(default=500.0, gt=0.0)
    margin_mm: float = Field(default=10.0, ge=0.0)
    gap_mm: float = Field(default=5.0, ge=0.0)
    nesting: NestingSettings = Field(default_factory=NestingSettings)

    # Output
    export_mode: ExportMode = ExportMode.PIECE_OUTLINES
    piece_numbering: bool = False

    @property
    def clearance(self) -> float:
        """Realized clearance: the explicit value, else the fit preset."""
        if self.clearance_mm is not None:
            return self.clearance_mm
        return FIT_MODE_CLEARANCE[self.fit_mode]

    @property
    def offset_delta(self) -> float:
        return self.kerf_mm / 2.0 - self.clearance

    @property
    def sheet_size(self) -> Tuple[float, float]:
        """Sheet (width, height) in mm.

        Raises:
            ConfigurationError: If the preset name is unknown.
        """
        if self.sheet_preset == CUSTOM_SHEET:
            return (self.sheet_width_mm, self.sheet_height_mm)
        if self.sheet_preset not in SHEET_PRESETS:
            raise ConfigurationError(f"Unknown sheet preset: {self.sheet_preset}")
        return SHEET_PRESETS[self.sheet_preset]

    @property
    def cell_size(self) -> Tuple[float, float]:
        return (self.width_mm / self.columns, self.height_mm / self.rows)

    @property
    def knob_spec(self) -> KnobSpec:
        return KnobSpec(
            style=self.knob_style,
            size_pct=self.knob_size_pct,
            roundness=self.knob_roundness,
            jitter=self.knob_jitter,
            flat_ratio=self.flat_ratio,
            difficulty=self.difficulty,
        )
